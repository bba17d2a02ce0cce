"""SQSMessage: one received message and its single-use acknowledgment."""
from __future__ import annotations

import base64
import binascii

from loguru import logger

from sqs_pubsub.app.infrastructure.messaging.sqs.deleter import DeleteCoordinator
from sqs_pubsub.app.infrastructure.messaging.sqs.in_flight import InFlightTracker
from sqs_pubsub.app.ports.queue_client import DeleteEntry, ReceivedMessage
from sqs_pubsub.app.ports.subscriber import MessageAlreadyDoneError


class SQSMessage:
    """Implements SubscriberMessage for SQS.

    Holds the receipt handle plus borrowed references to its subscriber's delete
    coordinator and in-flight tracker; it never changes subscriber state otherwise.
    """

    def __init__(
        self,
        record: ReceivedMessage,
        *,
        deleter: DeleteCoordinator,
        tracker: InFlightTracker,
        consume_base64: bool,
    ) -> None:
        self._record = record
        self._deleter = deleter
        self._tracker = tracker
        self._consume_base64 = consume_base64
        self._done = False

    @property
    def message_id(self) -> str:
        return self._record.message_id

    @property
    def receipt_handle(self) -> str:
        return self._record.receipt_handle

    @property
    def attributes(self) -> dict[str, str]:
        return dict(self._record.attributes)

    @property
    def raw_body(self) -> str:
        return self._record.body

    def message(self) -> bytes:
        """Message body; base64-decoded when the subscriber consumes base64 payloads.

        A body that fails to decode is logged and yields b"" rather than raising.
        """
        if not self._consume_base64:
            return self._record.body.encode()
        try:
            return base64.b64decode(self._record.body, validate=True)
        except (binascii.Error, ValueError) as e:
            logger.warning("unable to parse message body of {}: {}", self.message_id, e)
            return b""

    async def done(self) -> None:
        """Delete the message from the queue.

        With a delete buffer size of 0 this returns once the message itself has been
        deleted; with a larger buffer it returns when the batch containing it is flushed.
        Raises the delete error if that batch failed. Single use.
        """
        if self._done:
            raise MessageAlreadyDoneError(f"done() already called for message {self.message_id}")
        self._done = True
        self._tracker.begin_ack()
        try:
            receipt = self._deleter.submit(
                DeleteEntry(id=self.message_id, receipt_handle=self.receipt_handle)
            )
            await receipt
        finally:
            self._tracker.end_ack()

    @property
    def finished(self) -> bool:
        """True once done() or release() has been called."""
        return self._done

    def release(self) -> None:
        """Give up on the message without deleting it.

        It stops counting as in flight, so stop() no longer waits for it, and SQS
        redelivers it after its visibility timeout. Single use, like done().
        """
        if self._done:
            raise MessageAlreadyDoneError(f"message {self.message_id} already finished")
        self._done = True
        self._tracker.release()
        logger.debug("released message {} for redelivery", self.message_id)

    def __repr__(self) -> str:
        return f"SQSMessage(message_id={self.message_id!r})"
