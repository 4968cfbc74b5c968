"""In-memory state of one chat view."""

from __future__ import annotations

from dataclasses import dataclass, field

from cprchat.sessions import LocallyCreatedSessions, SessionList
from cprchat.transcript import Transcript


@dataclass
class ChatState:
    transcript: Transcript = field(default_factory=Transcript)
    session_id: str | None = None
    is_streaming: bool = False
    streaming_error_message: str = ""
    sessions: SessionList = field(default_factory=SessionList)
    locally_created: LocallyCreatedSessions = field(default_factory=LocallyCreatedSessions)
    # Session id of the current route ("/chat/<id>"), None on the blank chat page
    route_session_id: str | None = None

    def start_new_conversation(self) -> None:
        """Forget the active conversation; the next send allocates a session."""
        self.transcript.clear()
        self.session_id = None
        self.route_session_id = None
        self.streaming_error_message = ""
