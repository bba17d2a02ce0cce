"""Unbuffered hand-off from the poll loop to readers of the subscriber."""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")

_CLOSED: Any = object()


class MessageStream(Generic[T]):
    """Async iterator fed by a single sender.

    send() does not return until a reader has taken the item, which is the subscriber's
    only back-pressure: a slow reader throttles polling. close() ends iteration for
    every reader; nothing can be sent afterwards.
    """

    def __init__(self, on_accept: Callable[[T], None] | None = None) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._on_accept = on_accept
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, item: T, *, abandon: asyncio.Event | None = None) -> bool:
        """Hand item to a reader. Returns False if abandon was set before anyone took it."""
        if self._closed:
            raise RuntimeError("send on closed stream")
        accepted: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((item, accepted))
        if abandon is None:
            await accepted
            return True
        waiter = asyncio.ensure_future(abandon.wait())
        try:
            await asyncio.wait({accepted, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
        if accepted.done():
            return True
        # Not taken yet: the entry is still the only one queued.
        self._queue.get_nowait()
        accepted.cancel()
        return False

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> MessageStream[T]:
        return self

    async def __anext__(self) -> T:
        entry = await self._queue.get()
        if entry is _CLOSED:
            # Leave the marker for other readers.
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        item, accepted = entry
        if self._on_accept is not None:
            self._on_accept(item)
        if not accepted.done():
            accepted.set_result(None)
        return item
