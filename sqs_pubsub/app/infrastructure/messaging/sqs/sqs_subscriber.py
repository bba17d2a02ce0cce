"""
SQS subscriber: poll loop, batched deletes and graceful shutdown.

Lifecycle:
  RUNNING -> STOPPING (stop() requested) -> STOPPED (poll loop exited, deletes drained).
  A receive failure is recorded as the sticky error and triggers stop() on its own task;
  the output stream closes on the next loop iteration.

Concurrency:
  - The poll loop and the delete coordinator are tasks on the caller's event loop.
    boto3 calls run in worker threads (see SQSQueueClient).
  - Handing a message to the reader suspends the poll loop until it is taken. A stop
    request abandons a hand-off nobody has taken; that message is left undeleted and
    SQS redelivers it after its visibility timeout.
  - stop() returns only after every message the reader took has had done() called and
    the coordinator has flushed its buffer, so no acknowledgment is lost on shutdown.
"""
from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from sqs_pubsub.app.config.settings import SQSSettings
from sqs_pubsub.app.core import SERVICE_NAME
from sqs_pubsub.app.infrastructure.aws.client_factory import create_aws_client
from sqs_pubsub.app.infrastructure.aws.sqs_client import SQSQueueClient
from sqs_pubsub.app.infrastructure.messaging.sqs.constants import SubscriberState
from sqs_pubsub.app.infrastructure.messaging.sqs.deleter import DeleteCoordinator
from sqs_pubsub.app.infrastructure.messaging.sqs.in_flight import InFlightTracker
from sqs_pubsub.app.infrastructure.messaging.sqs.sqs_message import SQSMessage
from sqs_pubsub.app.infrastructure.messaging.sqs.stream import MessageStream
from sqs_pubsub.app.ports.queue_client import ConfigurationError, QueueClient
from sqs_pubsub.app.ports.subscriber import SubscriberStoppedError


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


class SQSSubscriber:
    """Subscriber implementation for SQS.

    Usage:
        subscriber = SQSSubscriber(settings)
        await subscriber.connect()
        async for message in subscriber.start():
            handle(message.message())
            await message.done()
        if subscriber.err is not None:
            raise subscriber.err

    With delete_buffer_size > 0, done() waits for a batch flush, so messages must be
    processed concurrently (more of them than the buffer size) for batches to fill.
    """

    def __init__(self, settings: SQSSettings, queue_client: QueueClient | None = None) -> None:
        if not settings.queue_name and not settings.queue_url:
            raise ConfigurationError("sqs queue name is required")
        self._settings = settings
        self._queue: QueueClient = queue_client or SQSQueueClient(
            create_aws_client("sqs", settings), settings
        )
        self._state = SubscriberState.RUNNING
        self._tracker = InFlightTracker()
        self._deleter = DeleteCoordinator(
            self._queue,
            settings.delete_buffer_size,
            is_stopping=lambda: self._state is not SubscriberState.RUNNING,
            in_flight=lambda: self._tracker.count,
        )
        self._output: MessageStream[SQSMessage] = MessageStream(
            on_accept=lambda _: self._tracker.increment()
        )
        self._stop_requests: asyncio.Queue[asyncio.Future[None]] = asyncio.Queue(maxsize=1)
        self._stop_requested = asyncio.Event()
        self._stopped = asyncio.Event()
        self._poll_task: asyncio.Task[None] | None = None
        self._error_stop_task: asyncio.Task[None] | None = None
        self._connected = False
        self._err: Exception | None = None

    @property
    def state(self) -> SubscriberState:
        return self._state

    @property
    def in_flight(self) -> int:
        return self._tracker.count

    @property
    def err(self) -> Exception | None:
        """First fatal receive error. Check it once the stream returned by start() ends."""
        return self._err

    async def connect(self) -> None:
        await self._queue.connect()
        self._connected = True
        _log("sqs_subscriber_connected", queue=self._settings.queue_name or self._settings.queue_url)

    def start(self) -> MessageStream[SQSMessage]:
        """Start polling and return the stream of received messages."""
        if not self._connected:
            raise RuntimeError("subscriber not connected")
        if self._state is not SubscriberState.RUNNING:
            raise SubscriberStoppedError("sqs subscriber is already stopped")
        if self._poll_task is not None:
            raise RuntimeError("subscriber already started")
        self._deleter.start()
        self._poll_task = asyncio.create_task(self._poll(), name="sqs-poll-loop")
        return self._output

    async def stop(self) -> None:
        """Stop polling and wait until every outstanding delete has been issued."""
        if self._state is not SubscriberState.RUNNING:
            raise SubscriberStoppedError("sqs subscriber is already stopped")
        exit_ack: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._stop_requests.put_nowait(exit_ack)
        self._stop_requested.set()
        self._state = SubscriberState.STOPPING
        _log("subscriber_stopping", in_flight=self._tracker.count)

        if self._poll_task is not None:
            await asyncio.wait({exit_ack, self._poll_task}, return_when=asyncio.FIRST_COMPLETED)
            await self._drain()
        else:
            self._output.close()
        self._state = SubscriberState.STOPPED
        self._stopped.set()
        _log("subscriber_stopped", delete_batches=self._deleter.batches)

    async def wait_stopped(self) -> None:
        """Wait for a stop, including one triggered by a receive error, to finish."""
        await self._stopped.wait()

    async def _drain(self) -> None:
        timeout = self._settings.drain_timeout_seconds
        try:
            await asyncio.wait_for(self._tracker.wait_settled(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "drain timed out after {}s with {} messages not done; they will be redelivered",
                timeout,
                self._tracker.count - self._tracker.acking,
            )
        await self._deleter.close()

    async def _stop_after_error(self) -> None:
        try:
            await self.stop()
        except SubscriberStoppedError:
            logger.debug("stop already in progress after receive error")

    def _log_error_stop(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error("stop after receive error failed: {}", exc)

    async def _pause(self) -> None:
        # Sleeps the full interval unless a stop request arrives.
        try:
            await asyncio.wait_for(
                self._stop_requested.wait(), timeout=self._settings.sleep_interval_seconds
            )
        except asyncio.TimeoutError:
            pass

    async def _poll(self) -> None:
        try:
            while True:
                try:
                    exit_ack = self._stop_requests.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                else:
                    if not exit_ack.done():
                        exit_ack.set_result(None)
                    return

                _log("sqs_receiving")
                try:
                    records = await self._queue.receive(
                        self._settings.max_messages, self._settings.timeout_seconds
                    )
                except Exception as e:
                    # Fatal: keep the first error, stop, and close the stream on the
                    # next iteration so readers stop iterating and check err.
                    logger.bind(service_name=SERVICE_NAME, event="sqs_receive_failed").error(
                        "sqs receive failed: {}", e
                    )
                    if self._err is None:
                        self._err = e
                    if not self._stop_requested.is_set():
                        self._error_stop_task = asyncio.create_task(
                            self._stop_after_error(), name="sqs-stop-after-error"
                        )
                        self._error_stop_task.add_done_callback(self._log_error_stop)
                    await self._stop_requested.wait()
                    continue

                if not records:
                    _log("sqs_no_messages", sleep_seconds=self._settings.sleep_interval_seconds)
                    await self._pause()
                    continue

                _log("sqs_messages_found", count=len(records))
                for record in records:
                    message = SQSMessage(
                        record,
                        deleter=self._deleter,
                        tracker=self._tracker,
                        consume_base64=self._settings.consume_base64,
                    )
                    if not await self._output.send(message, abandon=self._stop_requested):
                        _log("sqs_handoff_abandoned", message_id=record.message_id)
                        break
        finally:
            self._output.close()
            # The loop only exits through a stop request unless it crashed.
            while not self._stop_requests.empty():
                exit_ack = self._stop_requests.get_nowait()
                if not exit_ack.done():
                    exit_ack.set_result(None)
