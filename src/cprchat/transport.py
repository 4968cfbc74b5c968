"""Transport selection: one-shot vs streaming.

A conversation without a session id must go through the one-shot endpoint,
which allocates the session. Once a session exists the answer is streamed.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class _Unset:
    """Marker for "no explicit session id given" (distinct from None)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


class TransportKind(str, Enum):
    ONE_SHOT = "one_shot"
    STREAMING = "streaming"


def resolve_session_id(current: str | None, explicit: str | None = UNSET) -> str | None:
    """An explicit id (including an explicit None) wins over the stored one."""
    if explicit is UNSET:
        return current
    return explicit


def select_transport(current: str | None, explicit: str | None = UNSET) -> TransportKind:
    """Pick the call shape for the resolved session id."""
    if resolve_session_id(current, explicit):
        return TransportKind.STREAMING
    return TransportKind.ONE_SHOT
