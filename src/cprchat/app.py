"""Composition root: wires settings, backend client, state and handlers.

Build one ``ChatApp`` per chat view and call ``initialize()`` once it is on
screen; repeated calls are no-ops.
"""

from __future__ import annotations

import logging

from cprchat.api.client import ChatBackendClient
from cprchat.config import Settings, get_settings
from cprchat.orchestrator import ChatHooks, ChatStreamHandler
from cprchat.sessions import SessionLoader
from cprchat.state import ChatState
from cprchat.transport import UNSET

logger = logging.getLogger(__name__)


class ChatApp:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: ChatBackendClient | None = None,
        hooks: ChatHooks | None = None,
        state: ChatState | None = None,
    ):
        self.settings = settings or get_settings()
        self.client = client or ChatBackendClient(self.settings)
        self.state = state or ChatState()
        self.handler = ChatStreamHandler(
            self.client,
            self.state,
            hooks,
            title_chars=self.settings.session_title_chars,
            debug=self.settings.debug,
        )
        self.loader = SessionLoader(self.client, self.state)
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Load the session list. Runs once per app instance."""
        if self._initialized:
            return
        self._initialized = True
        try:
            self.state.sessions.replace_all(await self.client.list_sessions())
        except Exception as e:
            logger.warning("Could not load sessions: %s", e)

    async def send(self, message: str, files=None, session_id: str | None = UNSET) -> None:
        await self.handler.send(message, files, session_id)

    async def cancel(self) -> None:
        await self.handler.cancel()

    async def open_session(self, session_id: str | None) -> bool:
        """Navigate to ``session_id``; on failure fall back to a new chat."""
        await self.handler.cancel()
        if await self.loader.load(session_id):
            return True
        self.new_conversation()
        return False

    def new_conversation(self) -> None:
        self.state.start_new_conversation()

    async def aclose(self) -> None:
        await self.handler.cancel()
        await self.client.aclose()

    async def __aenter__(self) -> ChatApp:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
