# Local mock backend: chat (one-shot and SSE), sessions, history, feedback.
# Created: 2026-10-19
#
# Implements the backend surface the client talks to, in memory, so the CLI
# and the end-to-end tests run without the real service. Answers come from a
# pluggable responder (echo by default).

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from fastapi import APIRouter, FastAPI, HTTPException, Query, Response
from fastapi.responses import StreamingResponse

from cprchat.api.schemas import (
    BackendConversation,
    BackendSession,
    ChatRequest,
    ChatResponse,
    FeedbackRequest,
    SessionCreateRequest,
    SessionUpdateRequest,
    StatusResponse,
)

logger = logging.getLogger(__name__)

Responder = Callable[[str], str]


def echo_responder(message: str) -> str:
    return f"You said: {message}"


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class MockStore:
    """Sessions and their conversations, keyed by session id."""

    sessions: dict[str, BackendSession] = field(default_factory=dict)
    conversations: dict[str, list[BackendConversation]] = field(default_factory=dict)

    def create_session(
        self, title: str | None = None, project_id: str | None = None
    ) -> BackendSession:
        session = BackendSession(
            id=f"s_{uuid.uuid4().hex}",
            user_id="mock-user",
            title=title,
            project_id=project_id,
            created_at=_now(),
        )
        self.sessions[session.id] = session
        self.conversations[session.id] = []
        return session

    def require_session(self, session_id: str) -> BackendSession:
        session = self.sessions.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return session

    def record(self, session_id: str, message: str, response: str) -> BackendConversation:
        conv = BackendConversation(
            id=str(uuid.uuid4()),
            session_id=session_id,
            message=message,
            response=response,
            model_used="mock",
            created_at=_now(),
        )
        self.conversations[session_id].append(conv)
        session = self.sessions[session_id]
        if session.title is None:
            session.title = message[:50]
        session.updated_at = conv.created_at
        return conv

    def find_conversation(self, message_id: str) -> BackendConversation | None:
        for convs in self.conversations.values():
            for conv in convs:
                if conv.id == message_id:
                    return conv
        return None


def _sse(payload: dict | str) -> str:
    data = payload if isinstance(payload, str) else json.dumps(payload)
    return f"data: {data}\n\n"


def _split_words(text: str) -> list[str]:
    """Chunk ``text`` at word boundaries, keeping the separators."""
    chunks: list[str] = []
    for word in text.split(" "):
        chunks.append(word if not chunks else f" {word}")
    return [c for c in chunks if c]


def create_router(store: MockStore, responder: Responder, chunk_delay: float = 0.0) -> APIRouter:
    router = APIRouter(prefix="/api")

    @router.post("/chat", response_model=ChatResponse)
    async def chat_send(body: ChatRequest):
        """Complete response; allocates a session when none is given."""
        if not body.message.strip():
            raise HTTPException(status_code=400, detail="Message is required")
        if body.session_id:
            session = store.require_session(body.session_id)
        else:
            session = store.create_session()
        text = responder(body.message)
        conv = store.record(session.id, body.message, text)
        return ChatResponse(session_id=session.id, text=text, message_id=conv.id)

    @router.post("/chat/stream")
    async def chat_stream(body: ChatRequest):
        """Stream the answer for an existing session as SSE lines."""
        if not body.message.strip():
            raise HTTPException(status_code=400, detail="Message is required")
        if not body.session_id:
            raise HTTPException(status_code=400, detail="session_id is required for streaming")
        session = store.require_session(body.session_id)
        text = responder(body.message)

        async def _event_generator():
            for chunk in _split_words(text):
                yield _sse({"type": "content", "content": chunk})
                if chunk_delay:
                    await asyncio.sleep(chunk_delay)
            store.record(session.id, body.message, text)
            usage = {"input_tokens": len(body.message.split()), "output_tokens": len(text.split())}
            yield _sse({"type": "usage", "usage": usage})
            yield _sse({"type": "done"})
            yield _sse("[DONE]")

        return StreamingResponse(
            _event_generator(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @router.get("/chat/history/{session_id}", response_model=list[BackendConversation])
    async def chat_history(session_id: str):
        store.require_session(session_id)
        return store.conversations[session_id]

    @router.post("/chat/{message_id}/feedback", response_model=StatusResponse)
    async def chat_feedback(message_id: str, body: FeedbackRequest):
        conv = store.find_conversation(message_id)
        if conv is None:
            raise HTTPException(status_code=404, detail="Message not found")
        conv.feedback = body.feedback
        return StatusResponse()

    @router.get("/sessions", response_model=list[BackendSession])
    async def list_sessions(project_id: str | None = Query(None)):
        sessions = [s for s in store.sessions.values() if s.is_active]
        if project_id:
            sessions = [s for s in sessions if s.project_id == project_id]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)

    @router.post("/sessions", response_model=BackendSession, status_code=201)
    async def create_session(body: SessionCreateRequest):
        return store.create_session(body.title, body.project_id)

    @router.patch("/sessions/{session_id}", response_model=BackendSession)
    async def update_session(session_id: str, body: SessionUpdateRequest):
        session = store.require_session(session_id)
        changes = body.model_dump(exclude_unset=True)
        for key, value in changes.items():
            setattr(session, key, value)
        session.updated_at = _now()
        return session

    @router.delete("/sessions/{session_id}", status_code=204)
    async def delete_session(session_id: str):
        store.require_session(session_id)
        del store.sessions[session_id]
        store.conversations.pop(session_id, None)
        return Response(status_code=204)

    return router


def create_mock_backend(
    responder: Responder = echo_responder,
    *,
    store: MockStore | None = None,
    chunk_delay: float = 0.0,
) -> FastAPI:
    """Build the mock backend application."""
    app = FastAPI(title="CPR Chat mock backend", version="1.0.0")
    app.state.store = store or MockStore()
    app.include_router(create_router(app.state.store, responder, chunk_delay))
    return app


def run_mock_backend(host: str = "127.0.0.1", port: int = 3000, chunk_delay: float = 0.05) -> None:
    """Serve the mock backend with uvicorn (blocking)."""
    import uvicorn

    logger.info("Mock chat backend on http://%s:%d", host, port)
    app = create_mock_backend(chunk_delay=chunk_delay)
    uvicorn.run(app, host=host, port=port, log_level="warning")


__all__ = [
    "MockStore",
    "create_mock_backend",
    "echo_responder",
    "run_mock_backend",
]
