"""Shared concurrency primitives for the ingestion pipeline.

Two pieces are exposed:

1. **CancellationToken** -- a one-way flag the SSE route trips when the
   client disconnects.  Long-running loops poll ``cancelled`` between units
   of work so no new external call starts after the consumer is gone.

2. **batched** -- splits a sequence into fixed-size consecutive slices,
   used to pace embedding calls.
"""

from __future__ import annotations

import asyncio
from typing import Sequence, TypeVar

import structlog

from pdfchat.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


class CancellationToken:
    """Advisory cancellation flag shared between a producer and its consumer.

    ``cancel()`` is idempotent.  ``wait()`` lets a watcher task block until
    cancellation without polling.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        _logger.debug("cancellation_requested", reason=reason)

    async def wait(self) -> None:
        await self._event.wait()


def batched(items: Sequence[_T], size: int) -> list[list[_T]]:
    """Split *items* into consecutive lists of at most *size* elements.

    Order is preserved; the final batch may be shorter.
    """
    if size <= 0:
        raise ValueError(f"batch size must be positive, got {size}")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]
