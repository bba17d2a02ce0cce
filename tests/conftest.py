from __future__ import annotations

import asyncio
import base64
from collections import deque
from typing import Any, Sequence

import pytest

from sqs_pubsub.app.config.settings import SQSSettings
from sqs_pubsub.app.ports.queue_client import DeleteEntry, ReceivedMessage


def make_record(i: int, payload: str | None = None) -> ReceivedMessage:
    body = payload if payload is not None else f"payload-{i}"
    return ReceivedMessage(
        message_id=f"m{i}",
        receipt_handle=f"r{i}",
        body=base64.b64encode(body.encode()).decode(),
    )


def entry(i: int) -> DeleteEntry:
    return DeleteEntry(id=f"m{i}", receipt_handle=f"r{i}")


class FakeQueueClient:
    """Implements QueueClient for tests.

    Each scripted response is either a list of records or an exception to raise;
    once the script runs out every receive returns no messages.
    """

    def __init__(
        self,
        responses: Sequence[list[ReceivedMessage] | Exception] = (),
        *,
        delete_error: Exception | None = None,
    ) -> None:
        self._responses: deque[list[ReceivedMessage] | Exception] = deque(responses)
        self.delete_error = delete_error
        self.connected = False
        self.receive_calls: list[tuple[int, int]] = []
        self.receive_times: list[float] = []
        self.delete_calls: list[list[DeleteEntry]] = []

    async def connect(self) -> None:
        self.connected = True

    async def receive(self, max_messages: int, wait_seconds: int) -> list[ReceivedMessage]:
        self.receive_calls.append((max_messages, wait_seconds))
        self.receive_times.append(asyncio.get_running_loop().time())
        await asyncio.sleep(0)
        if not self._responses:
            return []
        response = self._responses.popleft()
        if isinstance(response, Exception):
            raise response
        return list(response)

    async def delete_batch(self, entries: Sequence[DeleteEntry]) -> None:
        self.delete_calls.append(list(entries))
        await asyncio.sleep(0)
        if self.delete_error is not None:
            raise self.delete_error


class FakeTopicClient:
    def __init__(self, *, raise_on_publish: Exception | None = None) -> None:
        self.published: list[tuple[str, str]] = []
        self._raise_on_publish = raise_on_publish

    async def publish(self, subject: str, message: str) -> str:
        if self._raise_on_publish is not None:
            raise self._raise_on_publish
        self.published.append((subject, message))
        return f"sns-{len(self.published)}"


async def settle(rounds: int = 10) -> None:
    """Let other tasks run until they block."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture()
def sqs_settings() -> SQSSettings:
    return SQSSettings(
        queue_name="test-queue",
        region="us-east-1",
        sleep_interval_seconds=0.01,
        timeout_seconds=0,
    )


def with_settings(settings: SQSSettings, **overrides: Any) -> SQSSettings:
    return settings.model_copy(update=overrides)
