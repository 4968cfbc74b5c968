"""Session bookkeeping on the client side.

- ``SessionEntry`` / ``SessionList``: the sidebar list of conversations.
- ``LocallyCreatedSessions``: ids minted by this client run. Navigating to
  one of them must not trigger a history fetch, since the transcript is
  already in memory.
- ``SessionLoader``: reconciles the navigational context (the session id in
  the current route) with the in-memory conversation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cprchat.api.client import ChatBackendClient
    from cprchat.state import ChatState

logger = logging.getLogger(__name__)


@dataclass
class SessionEntry:
    session_id: str
    title: str
    created_at: int
    project_id: str | None = None


class SessionList:
    """Sessions ordered newest first."""

    def __init__(self, entries: Iterable[SessionEntry] | None = None):
        self._entries: list[SessionEntry] = list(entries or [])

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[SessionEntry]:
        return iter(list(self._entries))

    def __contains__(self, session_id: object) -> bool:
        return self.get(session_id) is not None

    def get(self, session_id: object) -> SessionEntry | None:
        for entry in self._entries:
            if entry.session_id == session_id:
                return entry
        return None

    def prepend_if_missing(self, entry: SessionEntry) -> bool:
        """Insert ``entry`` at the head unless its id is already listed."""
        if entry.session_id in self:
            return False
        self._entries.insert(0, entry)
        return True

    def remove(self, session_id: str) -> bool:
        before = len(self._entries)
        self._entries = [e for e in self._entries if e.session_id != session_id]
        return len(self._entries) != before

    def replace_all(self, entries: Iterable[SessionEntry]) -> None:
        self._entries = list(entries)


class LocallyCreatedSessions:
    """Session ids created by this client instance. Never persisted."""

    def __init__(self) -> None:
        self._ids: set[str] = set()

    def add(self, session_id: str) -> None:
        self._ids.add(session_id)

    def has(self, session_id: str | None) -> bool:
        return session_id in self._ids

    __contains__ = has

    def __len__(self) -> int:
        return len(self._ids)


class SessionLoader:
    """Loads a session's history when the route points at it."""

    def __init__(self, client: ChatBackendClient, state: ChatState):
        self.client = client
        self.state = state

    def needs_fetch(self, session_id: str | None) -> bool:
        if not session_id:
            return False
        if self.state.locally_created.has(session_id):
            logger.debug("Skip loading %s: created locally", session_id)
            return False
        if session_id == self.state.session_id:
            logger.debug("Skip loading %s: already active", session_id)
            return False
        return True

    async def load(self, session_id: str | None) -> bool:
        """Make ``session_id`` the active conversation.

        Returns False when the history could not be fetched; the caller
        should then fall back to a fresh conversation.
        """
        self.state.route_session_id = session_id
        if not self.needs_fetch(session_id):
            return True
        try:
            messages = await self.client.get_history(session_id)
        except Exception as e:
            logger.warning("Failed to load session %s: %s", session_id, e)
            return False
        self.state.transcript.replace_all(messages)
        self.state.session_id = session_id
        logger.debug("Loaded session %s (%d messages)", session_id, len(messages))
        return True
