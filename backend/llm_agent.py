"""
Task assistant backed by Claude tool calling.

The model decides which task tool to call; the server runs it scoped to the
caller's identity and feeds the result back for the final reply. Transcripts
live in memory per conversation and are reset when the caller changes.
"""
import re
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import anthropic

from models import AgentReply, ToolResult, OWNER_SENTINEL
from prompts import (
    SYSTEM_PROMPT,
    TASK_TOOLS,
    CONFIRM_DELETE_REPLY,
    NO_EMAIL_REPLY,
    FALLBACK_REPLY,
)
from tools import run_tool

logger = logging.getLogger(__name__)

MAX_MESSAGE_CHARS = 2000
CONFIRM_RE = re.compile(r"\byes\b|\bconfirm\b|\bok\b", re.IGNORECASE)
EMAIL_RE = re.compile(r"\bemail\b")
ASK_WORDS = ("what is", "provide", "share", "tell")


def is_email_ask(text: Optional[str]) -> bool:
    """True when a reply asks the user for their email."""
    lowered = (text or "").lower()
    mentions_email = "your email" in lowered or bool(EMAIL_RE.search(lowered))
    return mentions_email and any(word in lowered for word in ASK_WORDS)


@dataclass
class Transcript:
    owner: str
    history: list[dict[str, Any]] = field(default_factory=list)


class TranscriptStore:
    """Chat history per conversation id, bound to the identity that started it."""

    def __init__(self):
        self._transcripts: dict[str, Transcript] = {}
        self._lock = threading.Lock()

    def get(self, conversation_id: str, owner: str) -> Transcript:
        with self._lock:
            transcript = self._transcripts.get(conversation_id)
            if transcript is None or transcript.owner != owner:
                if transcript is not None:
                    logger.info("Identity changed for conversation %s; history reset", conversation_id)
                transcript = Transcript(owner=owner)
                self._transcripts[conversation_id] = transcript
            return transcript

    def append(self, conversation_id: str, transcript: Transcript, user_text: str, reply: str):
        with self._lock:
            transcript.history = transcript.history + [
                {"role": "user", "content": user_text},
                {"role": "assistant", "content": reply},
            ]
            self._transcripts[conversation_id] = transcript


def _text_of(response) -> str:
    return "".join(block.text for block in response.content if block.type == "text").strip()


class LLMAgent:
    def __init__(
        self,
        client: anthropic.AsyncAnthropic,
        model: str,
        transcripts: Optional[TranscriptStore] = None,
        max_tokens: int = 1024,
    ):
        self.client = client
        self.model = model
        self.transcripts = transcripts or TranscriptStore()
        self.max_tokens = max_tokens

    async def _create(self, system: str, messages: list[dict[str, Any]]):
        return await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system,
            messages=messages,
            tools=TASK_TOOLS,
            temperature=0.2,
        )

    async def handle(self, conversation_id: str, message: str, owner: Optional[str]) -> AgentReply:
        """Run one chat turn. Raises anthropic.APIError when the API call fails."""
        owner = owner or OWNER_SENTINEL
        message = str(message)[:MAX_MESSAGE_CHARS]
        transcript = self.transcripts.get(conversation_id, owner)

        system = SYSTEM_PROMPT.format(today=datetime.now().strftime("%Y-%m-%d"))
        messages = transcript.history + [{"role": "user", "content": message}]

        response = await self._create(system, messages)
        tool_calls = [block for block in response.content if block.type == "tool_use"]

        if not tool_calls:
            reply = _text_of(response) or FALLBACK_REPLY
            if is_email_ask(reply):
                reply = NO_EMAIL_REPLY
            self.transcripts.append(conversation_id, transcript, message, reply)
            return AgentReply(reply=reply, conversation_id=conversation_id)

        if is_email_ask(_text_of(response)):
            self.transcripts.append(conversation_id, transcript, message, NO_EMAIL_REPLY)
            return AgentReply(reply=NO_EMAIL_REPLY, conversation_id=conversation_id)

        # Deletes only run once the user has said yes
        if any(call.name == "deleteTask" for call in tool_calls) and not CONFIRM_RE.search(message):
            self.transcripts.append(conversation_id, transcript, message, CONFIRM_DELETE_REPLY)
            return AgentReply(reply=CONFIRM_DELETE_REPLY, conversation_id=conversation_id)

        results: list[dict[str, Any]] = []
        tool_result: Optional[ToolResult] = None
        for call in tool_calls:
            # Identity is injected here; anything the model passed for it is dropped
            tool_result = run_tool(call.name, dict(call.input or {}), owner)
            logger.info("Conversation %s: %s -> %s", conversation_id, call.name,
                        "ok" if tool_result.success else tool_result.message)
            results.append({
                "type": "tool_result",
                "tool_use_id": call.id,
                "content": tool_result.model_dump_json(by_alias=True, exclude_none=True),
            })

        followup = await self._create(system, messages + [
            {"role": "assistant", "content": response.content},
            {"role": "user", "content": results},
        ])
        reply = _text_of(followup) or "Done."
        if is_email_ask(reply):
            reply = NO_EMAIL_REPLY
        self.transcripts.append(conversation_id, transcript, message, reply)
        return AgentReply(reply=reply, conversation_id=conversation_id, tool_result=tool_result)
