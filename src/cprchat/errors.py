"""Chat error taxonomy.

Every failure of an exchange (other than cancellation) ends up in
``classify_error()``, which maps it to one of a few user-facing messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

SESSION_INVALID_MESSAGE = "Invalid or expired session. Please start a new conversation."
UNAUTHORIZED_MESSAGE = "Your session expired. Please log in again."
SERVER_ERROR_MESSAGE = "Internal server error. Please try again in a few moments."

_SESSION_MARKERS = ("session", "sessão")


class ChatError(Exception):
    """Base class for chat client errors."""


class ChatHTTPError(ChatError):
    """The backend answered with a non-2xx status."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


class ChatTransportError(ChatError):
    """The backend could not be reached (connection refused, timeout, ...)."""


class StreamEventError(ChatError):
    """An ``error`` event arrived on the response stream."""


class DecoderClosedError(ChatError):
    """A stream decoder was fed after it was flushed."""


class ErrorKind(str, Enum):
    SESSION_INVALID = "session_invalid"
    UNAUTHORIZED = "unauthorized"
    SERVER_ERROR = "server_error"
    GENERIC = "generic"


@dataclass(frozen=True)
class ClassifiedError:
    """A failure reduced to what the user should see."""

    kind: ErrorKind
    message: str

    @property
    def clears_session(self) -> bool:
        return self.kind is ErrorKind.SESSION_INVALID


def classify_error(error: BaseException) -> ClassifiedError:
    """Map an exchange failure to a normalized message.

    Session problems are checked first: the stored session id must be
    dropped for those no matter which status code carried them.
    """
    message = str(error) or error.__class__.__name__
    lowered = message.lower()
    status = error.status_code if isinstance(error, ChatHTTPError) else None

    if any(marker in lowered for marker in _SESSION_MARKERS):
        return ClassifiedError(ErrorKind.SESSION_INVALID, SESSION_INVALID_MESSAGE)
    if status == 401 or "401" in message:
        return ClassifiedError(ErrorKind.UNAUTHORIZED, UNAUTHORIZED_MESSAGE)
    if status == 500 or "500" in message:
        return ClassifiedError(ErrorKind.SERVER_ERROR, SERVER_ERROR_MESSAGE)
    return ClassifiedError(ErrorKind.GENERIC, message)
