# Backend request/response schemas.
# Created: 2026-10-19

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from cprchat.transcript import Feedback

DEFAULT_SESSION_TITLE = "New conversation"


class ChatRequest(BaseModel):
    """Body of both the one-shot and the streaming chat call."""

    message: str
    session_id: str | None = None


class ChatResponse(BaseModel):
    """Complete (non-streaming) chat response."""

    session_id: str = ""
    text: str = ""
    message_id: str | None = None


class BackendSession(BaseModel):
    """Session as stored by the backend."""

    id: str
    user_id: str = ""
    title: str | None = None
    project_id: str | None = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime | None = None


class SessionCreateRequest(BaseModel):
    title: str | None = Field(None, max_length=200)
    project_id: str | None = None


class SessionUpdateRequest(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    project_id: str | None = None


class BackendConversation(BaseModel):
    """One stored question/answer pair of a session's history."""

    id: str
    session_id: str
    user_id: str | None = None
    message: str
    response: str = ""
    model_used: str = ""
    feedback: Feedback | None = None
    created_at: datetime


class FeedbackRequest(BaseModel):
    feedback: Feedback


class StatusResponse(BaseModel):
    status: str = "success"
