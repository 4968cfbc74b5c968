"""HTTP access to the chat backend."""

from cprchat.api.client import ChatBackendClient

__all__ = ["ChatBackendClient"]
