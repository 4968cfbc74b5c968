"""Chat transcript: ordered messages of one conversation.

Design notes:
- Messages are mutable dataclasses; the agent placeholder is filled in place
  while a response streams.
- The transcript only exposes named update operations (append, append to the
  last agent message, replace, prune). Callers never index into the list.
- Timestamps are integer seconds.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cprchat.api.schemas import BackendConversation


class Role(str, Enum):
    """Author of a transcript entry."""

    USER = "user"
    AGENT = "agent"


class Feedback(str, Enum):
    """User rating of an agent answer."""

    LIKE = "like"
    DISLIKE = "dislike"
    NONE = "none"


@dataclass(frozen=True)
class FileAttachment:
    """Attachment metadata shown next to a user message. No file content."""

    name: str
    size: int = 0


@dataclass
class Message:
    role: Role
    content: str = ""
    created_at: int = field(default_factory=lambda: int(time.time()))
    id: str | None = None
    streaming_error: bool = False
    files: list[FileAttachment] = field(default_factory=list)
    feedback: Feedback | None = None

    @property
    def is_agent(self) -> bool:
        return self.role == Role.AGENT

    @property
    def is_user(self) -> bool:
        return self.role == Role.USER


class Transcript:
    """Ordered, append-only (apart from pruning) list of messages."""

    def __init__(self, messages: Iterable[Message] | None = None):
        self._messages: list[Message] = list(messages or [])

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        # Iterate over a copy so rendering can run while a stream appends.
        return iter(self.snapshot())

    def __bool__(self) -> bool:
        return bool(self._messages)

    def snapshot(self) -> list[Message]:
        return list(self._messages)

    @property
    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def last_agent(self) -> Message | None:
        """Most recent agent entry, or None."""
        for message in reversed(self._messages):
            if message.is_agent:
                return message
        return None

    # -- mutations --

    def append(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def append_to_last_agent_message(self, delta: str) -> Message | None:
        """Concatenate ``delta`` onto the newest agent entry.

        Returns the updated message, or None when there is no agent entry.
        """
        message = self.last_agent()
        if message is not None:
            message.content = (message.content or "") + delta
        return message

    def replace_last_agent_content(
        self,
        content: str,
        *,
        message_id: str | None = None,
        created_at: int | None = None,
    ) -> Message | None:
        """Overwrite the newest agent entry (one-shot responses)."""
        message = self.last_agent()
        if message is None:
            return None
        message.content = content
        message.id = message_id
        if created_at is not None:
            message.created_at = created_at
        return message

    def touch_last_agent(self, created_at: int) -> Message | None:
        message = self.last_agent()
        if message is not None:
            message.created_at = created_at
        return message

    def mark_last_agent_error(self) -> Message | None:
        message = self.last_agent()
        if message is not None:
            message.streaming_error = True
        return message

    def prune_failed_pair(self) -> bool:
        """Drop a trailing ``[user, agent(streaming_error)]`` pair.

        Called before a resend so the failed attempt does not linger.
        """
        if len(self._messages) < 2:
            return False
        previous, last = self._messages[-2], self._messages[-1]
        if last.is_agent and last.streaming_error and previous.is_user:
            del self._messages[-2:]
            return True
        return False

    def replace_all(self, messages: Iterable[Message]) -> None:
        self._messages = list(messages)

    def clear(self) -> None:
        self._messages = []


def _epoch_seconds(value: datetime) -> int:
    return int(value.timestamp())


def messages_from_history(conversations: Iterable[BackendConversation]) -> list[Message]:
    """Expand stored conversations into transcript entries.

    Each conversation holds one question and its answer, so it becomes a user
    entry followed by an agent entry one second later.
    """
    messages: list[Message] = []
    for conv in conversations:
        timestamp = _epoch_seconds(conv.created_at)
        messages.append(
            Message(
                role=Role.USER, content=conv.message, created_at=timestamp, id=f"{conv.id}-user"
            )
        )
        messages.append(
            Message(
                role=Role.AGENT,
                content=conv.response,
                created_at=timestamp + 1,
                id=conv.id,
                feedback=conv.feedback,
            )
        )
    return messages
