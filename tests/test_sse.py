# Tests for SSE line decoding.
# Created: 2026-10-19

import pytest

from cprchat.errors import DecoderClosedError
from cprchat.sse import (
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    SSELineDecoder,
    UsageEvent,
    decode_stream,
    parse_sse_line,
)

PAYLOAD = (
    'data: {"type": "content", "content": "Olá, "}\n'
    "\n"
    'data: {"type": "content", "content": "produtor"}\n'
    'data: {"type": "usage", "usage": {"output_tokens": 2}}\n'
    "data: not json at all\n"
    'data: "a bare string"\n'
    'data: {"type": "done"}\n'
    "data: [DONE]\n"
)

EXPECTED = [
    ContentEvent("Olá, "),
    ContentEvent("produtor"),
    UsageEvent({"output_tokens": 2}),
    ContentEvent("not json at all"),
    ContentEvent("a bare string"),
    DoneEvent(),
    DoneEvent(),
]


def _decode_chunks(chunks):
    decoder = SSELineDecoder()
    events = []
    for chunk in chunks:
        events.extend(decoder.feed(chunk))
    events.extend(decoder.flush())
    return events


class TestParseLine:
    def test_content_event(self):
        assert parse_sse_line('data: {"type": "content", "content": "hi"}') == ContentEvent("hi")

    def test_without_data_prefix(self):
        assert parse_sse_line('{"type": "content", "content": "hi"}') == ContentEvent("hi")

    def test_usage_payload_is_opaque(self):
        event = parse_sse_line('data: {"type": "usage", "usage": [1, 2]}')
        assert event == UsageEvent([1, 2])

    def test_done_object(self):
        assert parse_sse_line('data: {"type": "done"}') == DoneEvent()

    @pytest.mark.parametrize(
        "line",
        ["[DONE]", "data: [DONE]", "data:[DONE]", "   data:   [DONE]  ", "\t[DONE]\r"],
    )
    def test_done_sentinel(self, line):
        assert parse_sse_line(line) == DoneEvent()

    def test_error_event(self):
        assert parse_sse_line('data: {"type": "error", "error": "boom"}') == ErrorEvent("boom")

    def test_error_event_message_key(self):
        assert parse_sse_line('{"type": "error", "message": "bad"}') == ErrorEvent("bad")

    def test_error_event_default_message(self):
        assert parse_sse_line('{"type": "error", "error": 42}') == ErrorEvent("Unknown error")

    @pytest.mark.parametrize("line", ["", "   ", "data:", "data:    "])
    def test_blank_lines_ignored(self, line):
        assert parse_sse_line(line) is None

    def test_invalid_json_falls_back_to_content(self):
        assert parse_sse_line("data:  {broken json ") == ContentEvent("{broken json")

    def test_json_string_is_content(self):
        assert parse_sse_line('data: "hello"') == ContentEvent("hello")

    @pytest.mark.parametrize("raw", ["42", "3.5", "true", "null", "[1, 2]"])
    def test_non_object_json_keeps_raw_text(self, raw):
        assert parse_sse_line(f"data: {raw}") == ContentEvent(raw)

    def test_unknown_type_yields_nothing(self):
        assert parse_sse_line('{"type": "ping"}') is None

    def test_content_with_non_string_content_yields_nothing(self):
        assert parse_sse_line('{"type": "content", "content": 5}') is None

    def test_object_without_type_yields_nothing(self):
        assert parse_sse_line('{"foo": "bar"}') is None


class TestSSELineDecoder:
    def test_single_chunk(self):
        assert _decode_chunks([PAYLOAD]) == EXPECTED

    def test_every_split_point_gives_same_events(self):
        for cut in range(len(PAYLOAD) + 1):
            assert _decode_chunks([PAYLOAD[:cut], PAYLOAD[cut:]]) == EXPECTED, cut

    def test_one_character_at_a_time(self):
        assert _decode_chunks(list(PAYLOAD)) == EXPECTED

    def test_partial_line_is_buffered(self):
        decoder = SSELineDecoder()
        assert decoder.feed('data: {"type": "content", ') == []
        assert decoder.pending == 'data: {"type": "content", '
        assert decoder.feed('"content": "x"}\n') == [ContentEvent("x")]
        assert decoder.pending == ""

    def test_crlf_line_endings(self):
        chunks = ['data: {"type": "content", "content": "a"}\r\n', "data: [DONE]\r\n"]
        events = _decode_chunks(chunks)
        assert events == [ContentEvent("a"), DoneEvent()]

    def test_flush_decodes_trailing_line(self):
        decoder = SSELineDecoder()
        assert decoder.feed("data: tail without newline") == []
        assert decoder.flush() == [ContentEvent("tail without newline")]

    def test_feed_after_flush_raises(self):
        decoder = SSELineDecoder()
        decoder.flush()
        assert decoder.closed
        with pytest.raises(DecoderClosedError):
            decoder.feed("data: x\n")

    def test_second_flush_is_empty(self):
        decoder = SSELineDecoder()
        decoder.feed("data: x")
        decoder.flush()
        assert decoder.flush() == []


class TestDecodeStream:
    async def test_bytes_split_inside_multibyte_character(self):
        raw = 'data: {"type": "content", "content": "ção"}\n'.encode()
        cut = raw.index("ç".encode()) + 1

        async def chunks():
            yield raw[:cut]
            yield raw[cut:]

        events = [event async for event in decode_stream(chunks())]
        assert events == [ContentEvent("ção")]

    async def test_text_chunks(self):
        async def chunks():
            yield PAYLOAD[:17]
            yield PAYLOAD[17:]

        events = [event async for event in decode_stream(chunks())]
        assert events == EXPECTED

    async def test_empty_stream(self):
        async def chunks():
            return
            yield  # pragma: no cover

        assert [event async for event in decode_stream(chunks())] == []
