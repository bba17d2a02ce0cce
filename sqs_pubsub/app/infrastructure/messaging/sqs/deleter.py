"""Batched acknowledgment of consumed SQS messages.

One coordinator task owns the buffer of pending delete entries and reads completion
requests from its intake in submission order. A request's receipt resolves only when
a DeleteMessageBatch call that includes its entry has finished; every request in a
batch receives that call's outcome. Failed deletes are reported, not retried: the
message reappears on the queue once its visibility timeout expires.

Flush triggers:
  - buffer holds more than `buffer_size` entries (0 flushes every request);
  - subscriber is stopping and this request belongs to the last in-flight message;
  - intake closed: whatever remains is flushed before the task exits.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

from sqs_pubsub.app.core import SERVICE_NAME
from sqs_pubsub.app.ports.queue_client import DeleteEntry, QueueClient
from sqs_pubsub.app.ports.subscriber import SubscriberStoppedError


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


@dataclass(frozen=True)
class DeleteRequest:
    entry: DeleteEntry
    receipt: asyncio.Future[None]


class DeleteCoordinator:
    def __init__(
        self,
        client: QueueClient,
        buffer_size: int,
        *,
        is_stopping: Callable[[], bool],
        in_flight: Callable[[], int],
    ) -> None:
        self._client = client
        self._buffer_size = buffer_size
        self._is_stopping = is_stopping
        self._in_flight = in_flight
        self._intake: asyncio.Queue[DeleteRequest | None] = asyncio.Queue()
        self._closed = False
        self._task: asyncio.Task[None] | None = None
        self._batches = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def batches(self) -> int:
        """Number of delete batch calls issued so far."""
        return self._batches

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError("delete coordinator already started")
        self._task = asyncio.create_task(self._run(), name="sqs-delete-coordinator")

    def submit(self, entry: DeleteEntry) -> asyncio.Future[None]:
        """Queue entry for deletion and return the future carrying its outcome."""
        if self._closed:
            raise SubscriberStoppedError(
                f"sqs subscriber is stopped; cannot delete message {entry.id}"
            )
        receipt: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._intake.put_nowait(DeleteRequest(entry=entry, receipt=receipt))
        return receipt

    async def close(self) -> None:
        """Stop accepting requests, flush the buffer, and wait for the task to exit."""
        if not self._closed:
            self._closed = True
            self._intake.put_nowait(None)
        if self._task is not None:
            await self._task

    async def _run(self) -> None:
        buffer: list[DeleteRequest] = []
        try:
            while True:
                request = await self._intake.get()
                if request is None:
                    break
                buffer.append(request)
                if self._is_stopping() and self._in_flight() == 1:
                    _log("sqs_delete_last_in_flight", buffered=len(buffer))
                    await self._flush(buffer)
                    buffer = []
                    continue
                if len(buffer) > self._buffer_size:
                    await self._flush(buffer)
                    buffer = []
            if buffer:
                await self._flush(buffer)
                buffer = []
        finally:
            self._closed = True
            self._abort(buffer)

    async def _flush(self, batch: list[DeleteRequest]) -> None:
        self._batches += 1
        entries = [r.entry for r in batch]
        error: Exception | None = None
        try:
            await self._client.delete_batch(entries)
        except Exception as e:
            logger.bind(
                service_name=SERVICE_NAME, event="sqs_delete_failed", size=len(entries)
            ).warning("sqs delete batch of {} entries failed: {}", len(entries), e)
            error = e
        else:
            _log("sqs_delete_batch", size=len(entries))
        for request in batch:
            if request.receipt.done():
                continue
            if error is None:
                request.receipt.set_result(None)
            else:
                request.receipt.set_exception(error)

    def _abort(self, buffer: list[DeleteRequest]) -> None:
        # Only reached with entries left when the task is cancelled.
        while not self._intake.empty():
            request = self._intake.get_nowait()
            if request is not None:
                buffer.append(request)
        for request in buffer:
            if not request.receipt.done():
                request.receipt.set_exception(
                    SubscriberStoppedError("sqs delete coordinator exited before deleting message")
                )
