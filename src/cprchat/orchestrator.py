"""Chat exchange orchestration.

``ChatStreamHandler.send()`` drives one exchange end to end:

1. optimistic user entry plus an empty agent placeholder,
2. one-shot call (no session yet; the response allocates one) or SSE stream
   (session known; content events are appended to the placeholder),
3. finalization: timestamps, session bookkeeping, error classification.

Only one exchange runs at a time. A new ``send()`` cancels the one in flight
and waits for it to unwind before touching the transcript, so the
placeholder never has two writers. Cancellation is silent: no error state,
the placeholder keeps whatever content it already received.

Created: 2026-10-19
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Protocol

from cprchat.api.schemas import ChatResponse
from cprchat.errors import StreamEventError, classify_error
from cprchat.sessions import SessionEntry
from cprchat.sse import ContentEvent, DoneEvent, ErrorEvent, StreamEvent, UsageEvent
from cprchat.state import ChatState
from cprchat.transcript import FileAttachment, Message, Role
from cprchat.transport import UNSET, TransportKind, resolve_session_id, select_transport

logger = logging.getLogger(__name__)

DEFAULT_TITLE_CHARS = 50


class ChatTransport(Protocol):
    """The two backend calls an exchange needs (see ``ChatBackendClient``)."""

    async def send_message(self, message: str, session_id: str | None = None) -> ChatResponse: ...

    def stream_message(self, message: str, session_id: str): ...


@dataclass
class ChatHooks:
    """Callbacks into the surrounding UI. All optional."""

    notify_error: Callable[[str], None] | None = None
    redirect: Callable[[str], None] | None = None
    focus_input: Callable[[], None] | None = None
    persist_session_id: Callable[[str], None] | None = None
    content_received: Callable[[str], None] | None = None


def _epoch_now() -> int:
    return int(time.time())


def _attachment(item) -> FileAttachment:
    if isinstance(item, FileAttachment):
        return item
    if isinstance(item, dict):
        return FileAttachment(name=item["name"], size=item.get("size", 0))
    return FileAttachment(name=item.name, size=getattr(item, "size", 0))


class ChatStreamHandler:
    """Runs chat exchanges against a ``ChatState``."""

    def __init__(
        self,
        client: ChatTransport,
        state: ChatState | None = None,
        hooks: ChatHooks | None = None,
        *,
        clock: Callable[[], int] = _epoch_now,
        title_chars: int = DEFAULT_TITLE_CHARS,
        debug: bool = False,
    ):
        self.client = client
        self.state = state or ChatState()
        self.hooks = hooks or ChatHooks()
        self._clock = clock
        self._title_chars = title_chars
        self._debug = debug
        self._active: asyncio.Task | None = None

    @property
    def in_flight(self) -> bool:
        return self._active is not None and not self._active.done()

    async def cancel(self) -> None:
        """Abort the exchange in flight (if any) and wait for it to unwind."""
        task = self._active
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.wait([task])

    async def send(
        self,
        message: str,
        files: Iterable | None = None,
        session_id: str | None = UNSET,
    ) -> None:
        """Send ``message`` and wait for the exchange to finish.

        ``files`` are attachment descriptors (``FileAttachment``, dicts or
        objects with ``name``/``size``). ``session_id`` overrides the stored
        session; pass None explicitly to force a new one.

        Being superseded (a later ``send()`` or ``cancel()``) returns
        quietly. Cancelling the caller stops the exchange and re-raises
        once it has unwound.
        """
        attachments = [_attachment(f) for f in files or []]
        if not message.strip() and not attachments:
            return

        # Overlapping sends can all be waiting on the same superseded exchange;
        # whichever resumes last must still find nothing in flight.
        await self.cancel()
        while self.in_flight:
            await self.cancel()
        task = asyncio.create_task(self._exchange(message, attachments, session_id))
        self._active = task
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not asyncio.current_task().cancelling():
                # Superseded before the exchange got to run
                return
            task.cancel()
            await asyncio.wait([task])
            raise

    # -- exchange --

    async def _exchange(
        self, message: str, attachments: list[FileAttachment], explicit_session_id
    ) -> None:
        state = self.state
        state.is_streaming = True
        state.streaming_error_message = ""
        try:
            if state.transcript.prune_failed_pair():
                logger.debug("Removed failed exchange before resend")

            sent_at = self._clock()
            state.transcript.append(
                Message(role=Role.USER, content=message, created_at=sent_at, files=attachments)
            )
            state.transcript.append(
                Message(role=Role.AGENT, content="", created_at=sent_at + 1, streaming_error=False)
            )

            session_id = resolve_session_id(state.session_id, explicit_session_id)
            transport = select_transport(state.session_id, explicit_session_id)
            if self._debug:
                logger.debug(
                    "Exchange start: transport=%s session=%s explicit=%r stored=%s",
                    transport.value,
                    session_id,
                    explicit_session_id,
                    state.session_id,
                )

            if transport is TransportKind.STREAMING:
                await self._run_streaming(message, session_id)
            else:
                await self._run_one_shot(message)
        except asyncio.CancelledError:
            logger.debug("Chat exchange cancelled")
        except Exception as e:
            self._fail(e)
        finally:
            state.is_streaming = False
            if self._active is asyncio.current_task():
                self._active = None
            self._call(self.hooks.focus_input)

    async def _run_streaming(self, message: str, session_id: str) -> None:
        transcript = self.state.transcript
        async with contextlib.aclosing(self.client.stream_message(message, session_id)) as events:
            async for event in events:
                if self._apply_event(event):
                    break
        transcript.touch_last_agent(self._clock())

    def _apply_event(self, event: StreamEvent) -> bool:
        """Apply one stream event. Returns True when the stream is finished."""
        if isinstance(event, ContentEvent):
            self.state.transcript.append_to_last_agent_message(event.text)
            self._call(self.hooks.content_received, event.text)
        elif isinstance(event, UsageEvent):
            logger.debug("Stream usage: %s", event.payload)
        elif isinstance(event, ErrorEvent):
            raise StreamEventError(event.message)
        elif isinstance(event, DoneEvent):
            logger.debug("Stream complete")
            return True
        return False

    async def _run_one_shot(self, message: str) -> None:
        response = await self.client.send_message(message, None)
        state = self.state
        new_session_id = response.session_id

        if new_session_id:
            state.session_id = new_session_id
            self._call(self.hooks.persist_session_id, new_session_id)
            state.locally_created.add(new_session_id)
            state.sessions.prepend_if_missing(
                SessionEntry(
                    session_id=new_session_id,
                    title=message[: self._title_chars],
                    created_at=self._clock(),
                )
            )
            if state.route_session_id != new_session_id:
                logger.debug("Redirecting to new session %s", new_session_id)
                state.route_session_id = new_session_id
                self._call(self.hooks.redirect, new_session_id)

        state.transcript.replace_last_agent_content(
            response.text, message_id=response.message_id, created_at=self._clock()
        )
        self._call(self.hooks.content_received, response.text)

    def _fail(self, error: Exception) -> None:
        state = self.state
        state.transcript.mark_last_agent_error()
        classified = classify_error(error)
        logger.warning("Chat exchange failed (%s): %s", classified.kind.value, error)
        if classified.clears_session:
            state.session_id = None
        state.streaming_error_message = classified.message
        self._call(self.hooks.notify_error, classified.message)

    @staticmethod
    def _call(hook: Callable | None, *args) -> None:
        if hook is None:
            return
        try:
            hook(*args)
        except Exception:
            logger.exception("Chat hook %r failed", hook)
