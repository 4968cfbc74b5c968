"""CPR document assistant: chat streaming client."""

from cprchat.app import ChatApp
from cprchat.orchestrator import ChatHooks, ChatStreamHandler
from cprchat.state import ChatState
from cprchat.transcript import Message, Role, Transcript

__all__ = [
    "ChatApp",
    "ChatHooks",
    "ChatState",
    "ChatStreamHandler",
    "Message",
    "Role",
    "Transcript",
]
