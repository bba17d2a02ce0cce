"""In-flight accounting for messages handed to the reader but not yet acknowledged."""
from __future__ import annotations

import asyncio


class InFlightTracker:
    """Counts delivered-but-unacknowledged messages and the done() calls in progress.

    Owned by one subscriber and touched only from its event loop. `count` goes up when
    the reader accepts a message and down when that message's done() finishes or the
    message is released undeleted.
    """

    def __init__(self) -> None:
        self._count = 0
        self._acking = 0
        self._changed = asyncio.Event()

    @property
    def count(self) -> int:
        return self._count

    @property
    def acking(self) -> int:
        return self._acking

    def increment(self) -> None:
        self._count += 1
        self._changed.set()

    def begin_ack(self) -> None:
        self._acking += 1
        self._changed.set()

    def end_ack(self) -> None:
        self._acking -= 1
        self.release()

    def release(self) -> None:
        """Drop one message from the count without acknowledging it."""
        if self._count == 0:
            raise RuntimeError("in-flight count would go negative")
        self._count -= 1
        self._changed.set()

    async def wait_settled(self) -> None:
        """Return once every in-flight message has a done() call in progress."""
        while self._count > self._acking:
            self._changed.clear()
            await self._changed.wait()
