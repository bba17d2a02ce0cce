"""SQS adapter for the QueueClient port.

boto3 is synchronous; every call runs in a worker thread through asyncio.to_thread so
the poll loop and delete coordinator never block the event loop.
"""
from __future__ import annotations

import asyncio
from typing import Any, Sequence

from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from sqs_pubsub.app.config.settings import SQSSettings
from sqs_pubsub.app.constants import SQS_DELETE_BATCH_LIMIT
from sqs_pubsub.app.core.backoff import exponential_backoff
from sqs_pubsub.app.ports.queue_client import (
    BatchDeleteError,
    ConfigurationError,
    DeleteEntry,
    QueueClientError,
    ReceivedMessage,
)


class SQSQueueClient:
    """QueueClient implementation over a boto3 SQS client."""

    def __init__(self, client: Any, settings: SQSSettings) -> None:
        if not settings.queue_name and not settings.queue_url:
            raise ConfigurationError("sqs queue name is required")
        self._client = client
        self._settings = settings
        self._queue_url: str | None = settings.queue_url or None

    @property
    def queue_url(self) -> str | None:
        return self._queue_url

    async def connect(self) -> None:
        if self._queue_url:
            return
        params: dict[str, Any] = {"QueueName": self._settings.queue_name}
        if self._settings.queue_owner_account_id:
            params["QueueOwnerAWSAccountId"] = self._settings.queue_owner_account_id
        async for attempt in exponential_backoff(
            self._settings.initial_backoff_seconds,
            self._settings.max_backoff_seconds,
            self._settings.backoff_multiplier,
            self._settings.max_connection_attempts,
        ):
            try:
                resp = await asyncio.to_thread(self._client.get_queue_url, **params)
                self._queue_url = resp["QueueUrl"]
                return
            except (BotoCoreError, ClientError) as e:
                logger.warning("sqs get_queue_url attempt {} failed: {}", attempt, e)
                if attempt >= self._settings.max_connection_attempts:
                    raise QueueClientError(
                        f"unable to resolve queue url for {self._settings.queue_name}: {e}"
                    ) from e

    def _require_url(self) -> str:
        if self._queue_url is None:
            raise RuntimeError("queue client not connected")
        return self._queue_url

    async def receive(self, max_messages: int, wait_seconds: int) -> list[ReceivedMessage]:
        queue_url = self._require_url()
        try:
            resp = await asyncio.to_thread(
                self._client.receive_message,
                QueueUrl=queue_url,
                MaxNumberOfMessages=max_messages,
                WaitTimeSeconds=wait_seconds,
                AttributeNames=["All"],
            )
        except (BotoCoreError, ClientError) as e:
            raise QueueClientError(f"sqs receive failed: {e}") from e
        return [
            ReceivedMessage(
                message_id=m["MessageId"],
                receipt_handle=m["ReceiptHandle"],
                body=m.get("Body", ""),
                attributes=dict(m.get("Attributes", {})),
            )
            for m in resp.get("Messages", [])
        ]

    async def delete_batch(self, entries: Sequence[DeleteEntry]) -> None:
        queue_url = self._require_url()
        failed: list[str] = []
        reasons: list[str] = []
        for start in range(0, len(entries), SQS_DELETE_BATCH_LIMIT):
            chunk = entries[start : start + SQS_DELETE_BATCH_LIMIT]
            # Positional ids: a redelivered message can appear twice in one buffer and
            # SQS rejects batches with repeated ids.
            try:
                resp = await asyncio.to_thread(
                    self._client.delete_message_batch,
                    QueueUrl=queue_url,
                    Entries=[
                        {"Id": str(i), "ReceiptHandle": e.receipt_handle}
                        for i, e in enumerate(chunk)
                    ],
                )
            except (BotoCoreError, ClientError) as e:
                failed.extend(entry.id for entry in chunk)
                reasons.append(f"sqs delete batch failed: {e}")
                raise BatchDeleteError("; ".join(reasons), failed) from e
            for f in resp.get("Failed", []):
                message_id = chunk[int(f["Id"])].id
                failed.append(message_id)
                reasons.append(f"{message_id}: {f.get('Code', '')} {f.get('Message', '')}".strip())
        if failed:
            raise BatchDeleteError(
                f"sqs delete batch reported {len(failed)} failed entries: {'; '.join(reasons)}",
                failed,
            )
