"""SSE line decoding for the chat stream.

The streaming endpoint answers with newline-delimited SSE-style lines::

    data: {"type": "content", "content": "Hel"}
    data: {"type": "usage", "usage": {...}}
    data: {"type": "done"}
    data: [DONE]

Network reads do not respect line boundaries, so ``SSELineDecoder`` keeps
the trailing fragment of every chunk until the rest of the line arrives.
Lines that are not valid JSON are never dropped; they come back as content.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass
from typing import Any

from cprchat.errors import DecoderClosedError

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"
DATA_PREFIX = "data:"
UNKNOWN_ERROR = "Unknown error"


@dataclass(frozen=True)
class ContentEvent:
    text: str


@dataclass(frozen=True)
class UsageEvent:
    payload: Any = None


@dataclass(frozen=True)
class DoneEvent:
    pass


@dataclass(frozen=True)
class ErrorEvent:
    message: str = UNKNOWN_ERROR


StreamEvent = ContentEvent | UsageEvent | DoneEvent | ErrorEvent


def _event_from_object(payload: dict) -> StreamEvent | None:
    kind = payload.get("type")
    if not isinstance(kind, str):
        return None
    if kind == "content":
        content = payload.get("content")
        return ContentEvent(content) if isinstance(content, str) else None
    if kind == "usage":
        return UsageEvent(payload.get("usage"))
    if kind == "done":
        return DoneEvent()
    if kind == "error":
        for key in ("error", "message"):
            if isinstance(payload.get(key), str):
                return ErrorEvent(payload[key])
        return ErrorEvent(UNKNOWN_ERROR)
    return None


def parse_sse_line(line: str) -> StreamEvent | None:
    """Decode a single line into a stream event.

    Returns None for blank lines and for JSON objects that carry no
    recognizable event.
    """
    normalized = line.strip()
    if normalized.startswith(DATA_PREFIX):
        normalized = normalized[len(DATA_PREFIX):].strip()
    if not normalized:
        return None
    if normalized == DONE_SENTINEL:
        return DoneEvent()

    try:
        payload = json.loads(normalized)
    except ValueError:
        return ContentEvent(normalized)

    if isinstance(payload, dict):
        event = _event_from_object(payload)
        if event is None:
            logger.debug("Ignoring unrecognized stream object: %s", normalized[:200])
        return event
    if isinstance(payload, str):
        return ContentEvent(payload)
    # Bare numbers, booleans, null and arrays: keep the raw text.
    return ContentEvent(normalized)


class SSELineDecoder:
    """Incremental decoder; one instance per response stream.

    ``feed()`` accepts text chunks and returns the events of every line the
    chunk completed. ``flush()`` ends the stream, decoding whatever is left
    in the buffer; the decoder refuses further input afterwards.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._closed = False

    @property
    def pending(self) -> str:
        return self._buffer

    @property
    def closed(self) -> bool:
        return self._closed

    def feed(self, chunk: str) -> list[StreamEvent]:
        if self._closed:
            raise DecoderClosedError("decoder already flushed")
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        return self._decode_lines(lines)

    def flush(self) -> list[StreamEvent]:
        if self._closed:
            return []
        self._closed = True
        remainder, self._buffer = self._buffer, ""
        return self._decode_lines([remainder])

    @staticmethod
    def _decode_lines(lines: list[str]) -> list[StreamEvent]:
        events = []
        for line in lines:
            event = parse_sse_line(line)
            if event is not None:
                events.append(event)
        return events


async def decode_stream(chunks: AsyncIterable[str | bytes]) -> AsyncIterator[StreamEvent]:
    """Decode an async iterable of text or byte chunks into events.

    Byte chunks go through an incremental UTF-8 decoder, so a multi-byte
    character split across two reads is reassembled.
    """
    decoder = SSELineDecoder()
    utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
    async for chunk in chunks:
        text = utf8.decode(chunk) if isinstance(chunk, bytes) else chunk
        for event in decoder.feed(text):
            yield event
    tail = utf8.decode(b"", final=True)
    if tail:
        for event in decoder.feed(tail):
            yield event
    for event in decoder.flush():
        yield event
