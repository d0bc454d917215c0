"""
Slot-filling dialogue loop for the rule-based task agent.

Each turn either answers the one pending question or extracts a fresh
intent and slots, then asks for the first missing required field or runs the
task tool for the intent. The session is saved on every turn.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

import datefields
from models import (
    AgentReply,
    AwaitingIntent,
    AwaitingSlot,
    Intent,
    Session,
    Task,
    ToolResult,
    OWNER_SENTINEL,
)
from nlp import Extractor, RuleBasedExtractor, fill_slot
from sessions import SessionManager
from tools import TOOLS_BY_INTENT, ToolFn

logger = logging.getLogger(__name__)

# Checked in order; the first missing one is asked for
REQUIRED_SLOTS: dict[Intent, tuple[str, ...]] = {
    Intent.ADD_TASK: ("title",),
    Intent.UPDATE_TASK: ("id",),
    Intent.DELETE_TASK: ("id",),
    Intent.LIST_TASKS: (),
    Intent.NONE: (),
}

SLOT_QUESTIONS = {
    "title": "What is the task title?",
    "id": "Which task should I target? Send the task ID.",
    "due_date": "What date? (YYYY-MM-DD)",
    "start_time": "Start time? (e.g., 09:30)",
    "end_time": "End time? (e.g., 10:30)",
    "priority": "Priority? (low/medium/high)",
    "completed": "Is it completed? (yes/no)",
}

GUIDANCE_REPLY = "I can help with tasks. Try: 'add task', 'update task', 'delete task', or 'list tasks'."
DELETED_REPLY = "Deleted."
NO_TASKS_REPLY = "No tasks found."
FAILURE_REPLY = "Something went wrong."
LIST_LIMIT = 5


def ask_for_slot(slot: str) -> str:
    return SLOT_QUESTIONS.get(slot, f"Please provide {slot}.")


def missing_slots(session: Session) -> list[str]:
    return [name for name in REQUIRED_SLOTS[session.intent] if session.slots.is_missing(name)]


def format_task_line(task: Task) -> str:
    day = datefields.format_day(task.due_date) or "no date"
    return f"• {task.title} ({task.priority or 'low'}) - {day} [{task.id}]"


def render_reply(intent: Intent, result: ToolResult) -> str:
    if not result.success:
        return result.message or FAILURE_REPLY
    if intent == Intent.ADD_TASK:
        return f"Added: {result.task.title}"
    if intent == Intent.UPDATE_TASK:
        return f"Updated: {result.task.title}"
    if intent == Intent.DELETE_TASK:
        return DELETED_REPLY
    if intent == Intent.LIST_TASKS:
        if not result.tasks:
            return NO_TASKS_REPLY
        return "\n".join(format_task_line(task) for task in result.tasks[:LIST_LIMIT])
    return "Done."


class Orchestrator:
    def __init__(
        self,
        sessions: SessionManager,
        extractor: Optional[Extractor] = None,
        tools: Optional[dict[Intent, ToolFn]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.sessions = sessions
        self.extractor = extractor or RuleBasedExtractor()
        self.tools = tools if tools is not None else TOOLS_BY_INTENT
        self.clock = clock

    def handle(self, conversation_id: str, message: str, owner: Optional[str]) -> AgentReply:
        """Advance one conversation by one message and return the agent's reply."""
        session = self.sessions.get_or_create(conversation_id)
        now = self.clock()

        pending = session.pending_slot
        if pending:
            session.slots = fill_slot(session.slots, message, pending, self.extractor, now)
            session.state = AwaitingIntent()
        else:
            intent, slots = self.extractor.extract(message, now)
            if intent != Intent.NONE:
                session.intent = intent
            session.slots = session.slots.merged(slots)

        # Identity comes from the request, never from the message text
        session.slots.owner = owner or OWNER_SENTINEL

        missing = missing_slots(session)
        if missing:
            session.state = AwaitingSlot(slot=missing[0])
            self.sessions.save(session)
            logger.debug("Conversation %s: %s needs %s", conversation_id, session.intent.value, missing[0])
            return AgentReply(reply=ask_for_slot(missing[0]), conversation_id=conversation_id)

        tool = self.tools.get(session.intent)
        if tool is None:
            self.sessions.save(session)
            return AgentReply(reply=GUIDANCE_REPLY, conversation_id=conversation_id)

        result = tool(session.slots, session.slots.owner)
        logger.info(
            "Conversation %s: %s -> %s",
            conversation_id, session.intent.value, "ok" if result.success else result.message,
        )
        session.last_tool_result = result
        self.sessions.save(session)

        return AgentReply(
            reply=render_reply(session.intent, result),
            conversation_id=conversation_id,
            tool_result=result,
        )
