"""Single-consumer progress channel for one ingestion run.

The coordinator pushes :class:`ProgressEvent` objects in; the SSE route
pulls them out with ``async for`` and writes one ``data:`` frame each.

The channel's lifecycle is an explicit :class:`ChannelState`:

    OPEN ──finalize()──→ CLOSED      (exactly one terminal event was queued)
    OPEN ──abandon()───→ ABANDONED   (consumer went away; nothing more is queued)

Both CLOSED and ABANDONED are absorbing.  Every write goes through
:meth:`can_send`, so after either transition further ``emit``/``finalize``
calls are ignored and report ``False``.  This is what guarantees at most
one terminal event per run and zero events after a disconnect.

Percentages are clamped to 0..100 and never allowed to decrease: an event
reporting less than the last emitted value is raised to it.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from enum import Enum

import structlog

from pdfchat.models.pipeline import IngestionState, ProgressError, ProgressEvent
from pdfchat.utils.logging import get_logger


class ChannelState(str, Enum):  # noqa: UP042
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    ABANDONED = "ABANDONED"


class ProgressChannel:
    """Ordered, monotonic progress stream with an idempotent terminal guard."""

    def __init__(self, channel_id: str = "") -> None:
        self._channel_id = channel_id
        # None is the end-of-stream sentinel.
        self._queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()
        self._state = ChannelState.OPEN
        self._last_progress = 0
        self._emitted = 0
        self._terminal: ProgressEvent | None = None
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def last_progress(self) -> int:
        return self._last_progress

    @property
    def emitted(self) -> int:
        """Number of events queued so far, terminal included."""
        return self._emitted

    @property
    def terminal_event(self) -> ProgressEvent | None:
        return self._terminal

    def can_send(self) -> bool:
        return self._state is ChannelState.OPEN

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def _clamp(self, progress: float) -> int:
        return max(self._last_progress, min(100, max(0, int(progress))))

    def emit(self, message: str, progress: float, state: IngestionState) -> bool:
        """Queue an intermediate event.  Returns ``False`` if the channel is not open."""
        if not self.can_send():
            return False
        event = ProgressEvent(message=message, progress=self._clamp(progress), state=state)
        self._put(event)
        return True

    def succeed(self, message: str, chat: dict) -> bool:
        """Queue the terminal success event (100%) and close the channel."""
        if not self.can_send():
            return False
        event = ProgressEvent(
            message=message,
            progress=100,
            state=IngestionState.COMPLETE,
            success=True,
            chat=chat,
        )
        return self._finalize(event)

    def fail(self, message: str, error: ProgressError) -> bool:
        """Queue the terminal failure event at the last reported percentage."""
        if not self.can_send():
            return False
        event = ProgressEvent(
            message=message,
            progress=self._last_progress,
            state=IngestionState.FAILED,
            success=False,
            error=error,
        )
        return self._finalize(event)

    def abandon(self, reason: str = "client_disconnected") -> bool:
        """Mark the consumer as gone.  No further events are queued."""
        if self._state is not ChannelState.OPEN:
            return False
        self._state = ChannelState.ABANDONED
        self._queue.put_nowait(None)
        self._logger.info(
            "progress_channel_abandoned",
            channel_id=self._channel_id,
            reason=reason,
            last_progress=self._last_progress,
        )
        return True

    def _finalize(self, event: ProgressEvent) -> bool:
        self._put(event)
        self._terminal = event
        self._state = ChannelState.CLOSED
        self._queue.put_nowait(None)
        self._logger.debug(
            "progress_channel_closed",
            channel_id=self._channel_id,
            success=event.success,
            events=self._emitted,
        )
        return True

    def _put(self, event: ProgressEvent) -> None:
        self._last_progress = event.progress
        self._emitted += 1
        self._queue.put_nowait(event)

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    async def events(self) -> AsyncIterator[ProgressEvent]:
        """Yield queued events in order until the channel closes or is abandoned."""
        while True:
            item = await self._queue.get()
            if item is None:
                return
            # A consumer that abandons mid-iteration must not see buffered events.
            if self._state is ChannelState.ABANDONED:
                return
            yield item

    def drain(self) -> list[ProgressEvent]:
        """Return every event queued so far without waiting."""
        items: list[ProgressEvent] = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is not None:
                items.append(item)
        return items
