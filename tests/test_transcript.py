# Tests for the chat transcript.
# Created: 2026-10-19

from datetime import UTC, datetime

from cprchat.api.schemas import BackendConversation
from cprchat.transcript import (
    Feedback,
    FileAttachment,
    Message,
    Role,
    Transcript,
    messages_from_history,
)


def _user(content, **kw):
    return Message(role=Role.USER, content=content, created_at=kw.pop("created_at", 100), **kw)


def _agent(content="", **kw):
    return Message(role=Role.AGENT, content=content, created_at=kw.pop("created_at", 101), **kw)


class TestMessage:
    def test_defaults(self):
        msg = Message(role=Role.USER, content="Oi")
        assert msg.id is None
        assert msg.streaming_error is False
        assert msg.files == []
        assert msg.feedback is None
        assert isinstance(msg.created_at, int)

    def test_role_helpers_accept_plain_strings(self):
        assert Message(role="agent").is_agent
        assert Message(role="user").is_user


class TestAppendToLastAgent:
    def test_deltas_are_concatenated_in_order(self):
        transcript = Transcript([_user("q"), _agent()])
        for delta in ["Hel", "lo, ", "world"]:
            transcript.append_to_last_agent_message(delta)
        assert transcript.last.content == "Hello, world"

    def test_finds_most_recent_agent_entry(self):
        transcript = Transcript([_agent("old"), _user("q"), _agent("new"), _user("trailing")])
        updated = transcript.append_to_last_agent_message("!")
        assert updated.content == "new!"
        assert transcript.snapshot()[0].content == "old"

    def test_no_agent_entry(self):
        transcript = Transcript([_user("q")])
        assert transcript.append_to_last_agent_message("x") is None
        assert transcript.last.content == "q"


class TestReplaceAndTouch:
    def test_replace_last_agent_content(self):
        transcript = Transcript([_user("q"), _agent("partial")])
        transcript.replace_last_agent_content("full answer", message_id="m1", created_at=500)
        agent = transcript.last
        assert agent.content == "full answer"
        assert agent.id == "m1"
        assert agent.created_at == 500

    def test_touch_last_agent(self):
        transcript = Transcript([_user("q"), _agent()])
        transcript.touch_last_agent(999)
        assert transcript.last.created_at == 999

    def test_mark_last_agent_error(self):
        transcript = Transcript([_user("q"), _agent()])
        transcript.mark_last_agent_error()
        assert transcript.last.streaming_error is True


class TestPruneFailedPair:
    def test_prunes_failed_pair(self):
        transcript = Transcript([_user("a"), _agent("", streaming_error=True)])
        assert transcript.prune_failed_pair() is True
        assert len(transcript) == 0

    def test_keeps_successful_pair(self):
        transcript = Transcript([_user("a"), _agent("ok")])
        assert transcript.prune_failed_pair() is False
        assert len(transcript) == 2

    def test_requires_user_before_failed_agent(self):
        transcript = Transcript([_agent("x"), _agent("", streaming_error=True)])
        assert transcript.prune_failed_pair() is False
        assert len(transcript) == 2

    def test_short_transcript(self):
        transcript = Transcript([_agent("", streaming_error=True)])
        assert transcript.prune_failed_pair() is False


class TestSnapshot:
    def test_iteration_is_over_a_copy(self):
        transcript = Transcript([_user("q")])
        seen = []
        for msg in transcript:
            seen.append(msg)
            transcript.append(_agent())
        assert len(seen) == 1
        assert len(transcript) == 2

    def test_files_are_kept(self):
        msg = _user("see attached", files=[FileAttachment("cpr.pdf", 2048)])
        assert Transcript([msg]).last.files == [FileAttachment(name="cpr.pdf", size=2048)]


class TestMessagesFromHistory:
    def test_each_conversation_becomes_a_pair(self):
        created = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)
        conv = BackendConversation(
            id="c1",
            session_id="s_1",
            message="Qual o vencimento?",
            response="30 de junho.",
            feedback="like",
            created_at=created,
        )
        user, agent = messages_from_history([conv])
        ts = int(created.timestamp())
        assert (user.role, user.id, user.content, user.created_at) == (
            Role.USER,
            "c1-user",
            "Qual o vencimento?",
            ts,
        )
        assert (agent.role, agent.id, agent.content, agent.created_at) == (
            Role.AGENT,
            "c1",
            "30 de junho.",
            ts + 1,
        )
        assert agent.feedback is Feedback.LIKE

    def test_empty_history(self):
        assert messages_from_history([]) == []
