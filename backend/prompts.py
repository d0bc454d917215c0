# System prompt for the tool-calling task assistant
# The caller's identity is injected by the server; the model never sees or asks for it
SYSTEM_PROMPT = """You are a helpful task assistant. Use tools to add, update, delete, and list tasks for the user.

Rules:
- The server provides the user identity; NEVER ask the user for email or identity.
- Always scope actions to that server-provided user.
- Ask for missing required info (title for add; id for update/delete).
- Confirm destructive actions (delete) before calling the tool.
- If user asks to delete without confirming, ask: "Are you sure?"

Task fields:
- priority: "low" | "medium" | "high" (default "low")
- dueDate: a calendar day, YYYY-MM-DD
- startTime / endTime: date with time, YYYY-MM-DDTHH:MM (24-hour)
- Convert relative dates like "today", "tomorrow", "next Monday" appropriately
- Convert times to 24-hour format, e.g., "3pm" -> "15:00", "9:30am" -> "09:30"

Task identification:
- Tasks are identified by their id (24 hex characters), shown in brackets when tasks are listed
- List tasks first when you need an id you do not have

Keep replies short and friendly.

Today's date is: {today}
"""

CONFIRM_DELETE_REPLY = 'Are you sure you want to delete this task? Reply "yes" to confirm.'

NO_EMAIL_REPLY = (
    "No need for your email; I already know who you are. "
    "Tell me what to do with your tasks (e.g., 'Add task \"Pay bill\" high priority tomorrow')."
)

FALLBACK_REPLY = "I can add, update, delete, and list tasks; tell me what to do."

_PRIORITY = {"type": "string", "enum": ["low", "medium", "high"]}

TASK_TOOLS = [
    {
        "name": "createTask",
        "description": "Create a new task. title is required. Optional: description, priority (low|medium|high), dueDate, startTime, endTime, completed.",
        "input_schema": {
            "type": "object",
            "properties": {
                "title": {"type": "string"},
                "description": {"type": "string"},
                "priority": _PRIORITY,
                "dueDate": {"type": "string", "description": "ISO date"},
                "startTime": {"type": "string", "description": "ISO datetime"},
                "endTime": {"type": "string", "description": "ISO datetime"},
                "completed": {"type": "boolean"},
            },
            "required": ["title"],
        },
    },
    {
        "name": "updateTask",
        "description": "Update a task by id. Provide only the fields to change.",
        "input_schema": {
            "type": "object",
            "properties": {
                "id": {"type": "string"},
                "title": {"type": "string"},
                "description": {"type": "string"},
                "priority": _PRIORITY,
                "dueDate": {"type": "string"},
                "startTime": {"type": "string"},
                "endTime": {"type": "string"},
                "completed": {"type": "boolean"},
            },
            "required": ["id"],
        },
    },
    {
        "name": "deleteTask",
        "description": "Delete a task by id.",
        "input_schema": {
            "type": "object",
            "properties": {"id": {"type": "string"}},
            "required": ["id"],
        },
    },
    {
        "name": "listTasks",
        "description": "List the user's tasks, newest first. Optional filters: priority, completed.",
        "input_schema": {
            "type": "object",
            "properties": {
                "priority": _PRIORITY,
                "completed": {"type": "boolean"},
            },
            "required": [],
        },
    },
]
