"""Async HTTP client for the chat backend.

Wraps the endpoints the chat UI talks to: the one-shot and streaming chat
calls, session CRUD, history and message feedback. Non-2xx answers become
``ChatHTTPError`` carrying the backend's ``detail``; connection problems
become ``ChatTransportError``.

Created: 2026-10-19
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import httpx

from cprchat.api.schemas import (
    DEFAULT_SESSION_TITLE,
    BackendConversation,
    BackendSession,
    ChatRequest,
    ChatResponse,
    FeedbackRequest,
    SessionCreateRequest,
    SessionUpdateRequest,
)
from cprchat.config import Settings, get_settings
from cprchat.errors import ChatHTTPError, ChatTransportError
from cprchat.sessions import SessionEntry
from cprchat.sse import StreamEvent, decode_stream
from cprchat.transcript import Feedback, Message, messages_from_history

logger = logging.getLogger(__name__)

_KEEP = object()


def _to_session_entry(session: BackendSession) -> SessionEntry:
    return SessionEntry(
        session_id=session.id,
        title=session.title or DEFAULT_SESSION_TITLE,
        created_at=int(session.created_at.timestamp()),
        project_id=session.project_id,
    )


async def _raise_for_status(response: httpx.Response, fallback: str) -> None:
    """Raise ``ChatHTTPError`` for a non-2xx response.

    The body is read eagerly so streamed responses can be inspected too.
    """
    if response.is_success:
        return
    await response.aread()
    try:
        detail = response.json().get("detail") or fallback
    except (ValueError, AttributeError):
        detail = f"Error {response.status_code}: {response.reason_phrase}"
    if not isinstance(detail, str):
        detail = str(detail)
    raise ChatHTTPError(response.status_code, detail)


class ChatBackendClient:
    """Client for the chat backend (one instance per conversation UI)."""

    def __init__(self, settings: Settings | None = None, http: httpx.AsyncClient | None = None):
        self.settings = settings or get_settings()
        self._owns_http = http is None
        self._http = http or self._build_http()

    def _build_http(self) -> httpx.AsyncClient:
        cookies = {}
        if self.settings.access_token:
            cookies[self.settings.auth_cookie_name] = self.settings.access_token
        return httpx.AsyncClient(
            base_url=self.settings.backend_url,
            timeout=self.settings.request_timeout,
            cookies=cookies,
        )

    async def __aenter__(self) -> ChatBackendClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def _request(self, method: str, url: str, fallback: str, **kwargs) -> httpx.Response:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise ChatTransportError(f"Could not reach chat backend: {e}") from e
        await _raise_for_status(response, fallback)
        return response

    # -- chat --

    async def send_message(self, message: str, session_id: str | None = None) -> ChatResponse:
        """One-shot exchange. Allocates a session when ``session_id`` is None."""
        body = ChatRequest(message=message.strip(), session_id=session_id)
        response = await self._request(
            "POST", self.settings.chat_path, "Failed to send message", json=body.model_dump()
        )
        return ChatResponse.model_validate(response.json())

    async def stream_message(self, message: str, session_id: str) -> AsyncIterator[StreamEvent]:
        """Streaming exchange for an existing session.

        Yields decoded events in arrival order. Closing the iterator early
        (or cancelling the consumer) closes the HTTP stream.
        """
        body = ChatRequest(message=message.strip(), session_id=session_id)
        logger.debug("Opening chat stream for session %s", session_id)
        try:
            async with self._http.stream(
                "POST", self.settings.chat_stream_path, json=body.model_dump()
            ) as response:
                await _raise_for_status(response, "Failed to start streaming")
                async for event in decode_stream(response.aiter_bytes()):
                    yield event
        except httpx.TransportError as e:
            raise ChatTransportError(f"Could not reach chat backend: {e}") from e

    async def get_history(self, session_id: str) -> list[Message]:
        response = await self._request(
            "GET",
            f"{self.settings.chat_history_path}/{session_id}",
            "Failed to load conversation history",
        )
        conversations = [BackendConversation.model_validate(item) for item in response.json()]
        return messages_from_history(conversations)

    async def submit_feedback(self, message_id: str, feedback: Feedback | str) -> None:
        body = FeedbackRequest(feedback=feedback)
        await self._request(
            "POST",
            f"{self.settings.chat_path}/{message_id}/feedback",
            "Failed to submit feedback",
            json=body.model_dump(mode="json"),
        )

    # -- sessions --

    async def list_sessions(self, project_id: str | None = None) -> list[SessionEntry]:
        params = {"project_id": project_id} if project_id else None
        response = await self._request(
            "GET", self.settings.sessions_path, "Failed to load sessions", params=params
        )
        return [_to_session_entry(BackendSession.model_validate(s)) for s in response.json()]

    async def create_session(
        self, title: str | None = None, project_id: str | None = None
    ) -> SessionEntry:
        body = SessionCreateRequest(title=title, project_id=project_id)
        response = await self._request(
            "POST", self.settings.sessions_path, "Failed to create session", json=body.model_dump()
        )
        return _to_session_entry(BackendSession.model_validate(response.json()))

    async def update_session(
        self,
        session_id: str,
        *,
        title: str | None = None,
        project_id: str | None = _KEEP,
    ) -> SessionEntry:
        """Rename a session and/or move it to a project (None detaches it)."""
        fields = {}
        if title is not None:
            fields["title"] = title
        if project_id is not _KEEP:
            fields["project_id"] = project_id
        body = SessionUpdateRequest(**fields)
        response = await self._request(
            "PATCH",
            f"{self.settings.sessions_path}/{session_id}",
            "Failed to update session",
            json=body.model_dump(exclude_unset=True),
        )
        return _to_session_entry(BackendSession.model_validate(response.json()))

    async def delete_session(self, session_id: str) -> None:
        await self._request(
            "DELETE", f"{self.settings.sessions_path}/{session_id}", "Failed to delete session"
        )
