# Tests for the ChatApp composition root.
# Created: 2026-10-19

from unittest.mock import AsyncMock, MagicMock

import pytest

from cprchat.app import ChatApp
from cprchat.config import Settings
from cprchat.sessions import SessionEntry
from cprchat.transcript import Message, Role


@pytest.fixture
def client():
    mock = MagicMock()
    mock.list_sessions = AsyncMock(return_value=[SessionEntry("s_1", "Primeira", 100)])
    mock.get_history = AsyncMock(return_value=[])
    mock.aclose = AsyncMock()
    return mock


@pytest.fixture
def app(client):
    return ChatApp(Settings(session_title_chars=10), client=client)


class TestChatApp:
    async def test_initialize_runs_once(self, app, client):
        await app.initialize()
        await app.initialize()
        client.list_sessions.assert_awaited_once()
        assert app.initialized
        assert [s.session_id for s in app.state.sessions] == ["s_1"]

    async def test_initialize_tolerates_backend_failure(self, app, client):
        client.list_sessions.side_effect = RuntimeError("down")
        await app.initialize()
        assert app.initialized
        assert len(app.state.sessions) == 0

    async def test_open_session_failure_resets(self, app, client):
        client.get_history.side_effect = RuntimeError("Session not found")
        app.state.session_id = "s_old"
        app.state.transcript.append(Message(role=Role.USER, content="x"))
        assert await app.open_session("s_other") is False
        assert app.state.session_id is None
        assert app.state.route_session_id is None
        assert len(app.state.transcript) == 0

    async def test_settings_flow_into_handler(self, app):
        assert app.handler._title_chars == 10

    async def test_context_manager(self, client):
        async with ChatApp(Settings(), client=client) as app:
            assert app.initialized
        client.aclose.assert_awaited_once()
