"""SQSQueueClient against a stand-in for the boto3 SQS client."""
from __future__ import annotations

from typing import Any

import pytest
from botocore.exceptions import ClientError

from sqs_pubsub.app.infrastructure.aws.sqs_client import SQSQueueClient
from sqs_pubsub.app.ports.queue_client import (
    BatchDeleteError,
    ConfigurationError,
    DeleteEntry,
    QueueClientError,
)
from tests.conftest import with_settings

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/test-queue"


def _client_error(operation: str, code: str = "AWS.SimpleQueueService.NonExistentQueue") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "nope"}}, operation)


class _FakeBotoSQS:
    def __init__(self) -> None:
        self.get_queue_url_errors: list[Exception] = []
        self.get_queue_url_calls: list[dict[str, Any]] = []
        self.receive_calls: list[dict[str, Any]] = []
        self.receive_response: dict[str, Any] | Exception = {"Messages": []}
        self.delete_calls: list[dict[str, Any]] = []
        self.failed_ids: set[str] = set()
        # Keyed by call index.
        self.delete_errors: dict[int, Exception] = {}

    def get_queue_url(self, **kwargs: Any) -> dict[str, Any]:
        self.get_queue_url_calls.append(kwargs)
        if self.get_queue_url_errors:
            raise self.get_queue_url_errors.pop(0)
        return {"QueueUrl": QUEUE_URL}

    def receive_message(self, **kwargs: Any) -> dict[str, Any]:
        self.receive_calls.append(kwargs)
        if isinstance(self.receive_response, Exception):
            raise self.receive_response
        return self.receive_response

    def delete_message_batch(self, **kwargs: Any) -> dict[str, Any]:
        self.delete_calls.append(kwargs)
        if len(self.delete_calls) - 1 in self.delete_errors:
            raise self.delete_errors[len(self.delete_calls) - 1]
        failed = [
            {"Id": e["Id"], "Code": "ReceiptHandleIsInvalid", "Message": "expired", "SenderFault": True}
            for e in kwargs["Entries"]
            if e["ReceiptHandle"] in self.failed_ids
        ]
        ok = [{"Id": e["Id"]} for e in kwargs["Entries"] if e["ReceiptHandle"] not in self.failed_ids]
        return {"Successful": ok, "Failed": failed}


def test_queue_name_or_url_required(sqs_settings):
    with pytest.raises(ConfigurationError):
        SQSQueueClient(_FakeBotoSQS(), with_settings(sqs_settings, queue_name=""))


@pytest.mark.asyncio
async def test_connect_resolves_queue_url(sqs_settings):
    boto = _FakeBotoSQS()
    client = SQSQueueClient(boto, with_settings(sqs_settings, queue_owner_account_id="123456789012"))

    await client.connect()

    assert client.queue_url == QUEUE_URL
    assert boto.get_queue_url_calls == [
        {"QueueName": "test-queue", "QueueOwnerAWSAccountId": "123456789012"}
    ]


@pytest.mark.asyncio
async def test_configured_url_skips_lookup(sqs_settings):
    boto = _FakeBotoSQS()
    client = SQSQueueClient(boto, with_settings(sqs_settings, queue_name="", queue_url=QUEUE_URL))

    await client.connect()

    assert client.queue_url == QUEUE_URL
    assert boto.get_queue_url_calls == []


@pytest.mark.asyncio
async def test_connect_retries_up_to_max_attempts(sqs_settings):
    boto = _FakeBotoSQS()
    boto.get_queue_url_errors = [_client_error("GetQueueUrl")]
    settings = with_settings(
        sqs_settings, max_connection_attempts=2, initial_backoff_seconds=0.0
    )
    client = SQSQueueClient(boto, settings)

    await client.connect()

    assert len(boto.get_queue_url_calls) == 2
    assert client.queue_url == QUEUE_URL


@pytest.mark.asyncio
async def test_connect_failure_raises_queue_client_error(sqs_settings):
    boto = _FakeBotoSQS()
    boto.get_queue_url_errors = [_client_error("GetQueueUrl")]
    client = SQSQueueClient(boto, sqs_settings)

    with pytest.raises(QueueClientError, match="test-queue"):
        await client.connect()


@pytest.mark.asyncio
async def test_receive_requires_connect(sqs_settings):
    client = SQSQueueClient(_FakeBotoSQS(), sqs_settings)
    with pytest.raises(RuntimeError, match="not connected"):
        await client.receive(10, 2)


@pytest.mark.asyncio
async def test_receive_maps_messages(sqs_settings):
    boto = _FakeBotoSQS()
    boto.receive_response = {
        "Messages": [
            {"MessageId": "a", "ReceiptHandle": "ra", "Body": "aGk=", "Attributes": {"SentTimestamp": "1"}},
            {"MessageId": "b", "ReceiptHandle": "rb", "Body": "Ynll"},
        ]
    }
    client = SQSQueueClient(boto, sqs_settings)
    await client.connect()

    records = await client.receive(5, 3)

    assert [(r.message_id, r.receipt_handle, r.body) for r in records] == [
        ("a", "ra", "aGk="),
        ("b", "rb", "Ynll"),
    ]
    assert records[0].attributes == {"SentTimestamp": "1"}
    call = boto.receive_calls[0]
    assert (call["QueueUrl"], call["MaxNumberOfMessages"], call["WaitTimeSeconds"]) == (QUEUE_URL, 5, 3)


@pytest.mark.asyncio
async def test_receive_without_messages_key_is_empty(sqs_settings):
    boto = _FakeBotoSQS()
    boto.receive_response = {}
    client = SQSQueueClient(boto, sqs_settings)
    await client.connect()

    assert await client.receive(10, 0) == []


@pytest.mark.asyncio
async def test_receive_error_is_wrapped(sqs_settings):
    boto = _FakeBotoSQS()
    boto.receive_response = _client_error("ReceiveMessage", "ThrottlingException")
    client = SQSQueueClient(boto, sqs_settings)
    await client.connect()

    with pytest.raises(QueueClientError) as exc_info:
        await client.receive(10, 0)
    assert isinstance(exc_info.value.__cause__, ClientError)


@pytest.mark.asyncio
async def test_delete_batch_splits_into_chunks_of_ten(sqs_settings):
    boto = _FakeBotoSQS()
    client = SQSQueueClient(boto, sqs_settings)
    await client.connect()

    await client.delete_batch([DeleteEntry(id=f"m{i}", receipt_handle=f"r{i}") for i in range(23)])

    assert [len(c["Entries"]) for c in boto.delete_calls] == [10, 10, 3]
    assert boto.delete_calls[2]["Entries"][0] == {"Id": "0", "ReceiptHandle": "r20"}


@pytest.mark.asyncio
async def test_delete_batch_accepts_repeated_message_ids(sqs_settings):
    boto = _FakeBotoSQS()
    client = SQSQueueClient(boto, sqs_settings)
    await client.connect()

    await client.delete_batch([DeleteEntry("m1", "r1"), DeleteEntry("m1", "r1-redelivered")])

    assert [e["Id"] for e in boto.delete_calls[0]["Entries"]] == ["0", "1"]


@pytest.mark.asyncio
async def test_delete_batch_reports_failed_entries(sqs_settings):
    boto = _FakeBotoSQS()
    boto.failed_ids = {"r1"}
    client = SQSQueueClient(boto, sqs_settings)
    await client.connect()

    with pytest.raises(BatchDeleteError) as exc_info:
        await client.delete_batch([DeleteEntry("m0", "r0"), DeleteEntry("m1", "r1")])

    assert exc_info.value.failed_ids == ["m1"]
    assert "ReceiptHandleIsInvalid" in str(exc_info.value)


@pytest.mark.asyncio
async def test_delete_batch_error_keeps_failures_from_earlier_chunks(sqs_settings):
    boto = _FakeBotoSQS()
    boto.failed_ids = {"r3"}
    boto.delete_errors = {1: _client_error("DeleteMessageBatch", "AccessDenied")}
    client = SQSQueueClient(boto, sqs_settings)
    await client.connect()

    with pytest.raises(BatchDeleteError) as exc_info:
        await client.delete_batch([DeleteEntry(f"m{i}", f"r{i}") for i in range(12)])

    assert exc_info.value.failed_ids == ["m3", "m10", "m11"]
    assert "ReceiptHandleIsInvalid" in str(exc_info.value)
    assert "AccessDenied" in str(exc_info.value)
