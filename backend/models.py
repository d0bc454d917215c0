import time
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Owner recorded when no caller identity is available
OWNER_SENTINEL = "temp-user"
PRIORITIES = ("low", "medium", "high")


class TaskValidationError(ValueError):
    """Raised when task fields cannot be persisted (empty title, bad priority, bad date)."""


class ApiModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Task(ApiModel):
    id: str
    title: str
    description: str = ""
    priority: str = "low"
    due_date: Optional[str] = None  # UTC midnight, e.g. 2025-01-21T00:00:00+00:00
    start_time: Optional[str] = None  # ISO datetime
    end_time: Optional[str] = None  # ISO datetime
    completed: bool = False
    owner: str = OWNER_SENTINEL
    created_at: str  # ISO format datetime string


class TaskCreate(ApiModel):
    title: str
    description: str = ""
    priority: str = "low"
    due_date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    completed: bool = False
    owner: Optional[str] = None


class TaskUpdate(ApiModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    completed: Optional[bool] = None
    owner: Optional[str] = None


class OwnerBody(ApiModel):
    owner: Optional[str] = None


class ToolResult(ApiModel):
    success: bool
    task: Optional[Task] = None
    tasks: Optional[list[Task]] = None
    message: Optional[str] = None


# Agent dialogue state

class Intent(str, Enum):
    ADD_TASK = "add_task"
    UPDATE_TASK = "update_task"
    DELETE_TASK = "delete_task"
    LIST_TASKS = "list_tasks"
    NONE = "none"


SlotName = Literal[
    "title", "id", "description", "priority",
    "due_date", "start_time", "end_time", "completed",
]


class Slots(BaseModel):
    """Structured fields gathered from the conversation so far."""
    title: Optional[str] = None
    id: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    completed: Optional[bool] = None
    owner: Optional[str] = None

    def merged(self, other: "Slots") -> "Slots":
        """Return a copy where every value set on `other` wins."""
        return self.model_copy(update=other.model_dump(exclude_none=True))

    def is_missing(self, name: str) -> bool:
        value = getattr(self, name)
        if isinstance(value, str):
            return not value.strip()
        return value is None


class AwaitingIntent(BaseModel):
    kind: Literal["awaiting_intent"] = "awaiting_intent"


class AwaitingSlot(BaseModel):
    kind: Literal["awaiting_slot"] = "awaiting_slot"
    slot: SlotName


DialogueState = Annotated[Union[AwaitingIntent, AwaitingSlot], Field(discriminator="kind")]


class Session(BaseModel):
    conversation_id: str
    intent: Intent = Intent.NONE
    slots: Slots = Field(default_factory=Slots)
    state: DialogueState = Field(default_factory=AwaitingIntent)
    last_tool_result: Optional[ToolResult] = None
    updated_at: float = Field(default_factory=time.time)

    @property
    def pending_slot(self) -> Optional[str]:
        if isinstance(self.state, AwaitingSlot):
            return self.state.slot
        return None


# Chat endpoint payloads

class AgentMessage(ApiModel):
    # Optional so missing values produce the agent's own 400 message
    conversation_id: Optional[str] = None
    message: Optional[str] = None
    user_email: Optional[str] = None


class AgentReply(ApiModel):
    reply: str
    conversation_id: str
    tool_result: Optional[ToolResult] = None
