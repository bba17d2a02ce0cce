"""Queue client port: receive and batched delete against a remote queue.

The subscriber depends only on this port; the boto3 SQS adapter implements it and
tests use fakes. Delete is all-or-nothing from the caller's point of view.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence, runtime_checkable


class ConfigurationError(ValueError):
    """Raised at construction when a required identity field is missing."""


class QueueClientError(Exception):
    """Base for transport/service failures (receive, delete, queue lookup)."""


class BatchDeleteError(QueueClientError):
    """Raised when a delete batch is rejected or reports failed entries."""

    def __init__(self, message: str, failed_ids: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.failed_ids = list(failed_ids)


@dataclass(frozen=True)
class ReceivedMessage:
    """One record returned by a receive call."""

    message_id: str
    receipt_handle: str
    body: str
    attributes: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DeleteEntry:
    """Identity needed to acknowledge one received message."""

    id: str
    receipt_handle: str


@runtime_checkable
class QueueClient(Protocol):
    """Port: remote queue operations. Implementations live in infrastructure."""

    async def connect(self) -> None:
        """Resolve the queue identity; raise QueueClientError on failure."""
        ...

    async def receive(self, max_messages: int, wait_seconds: int) -> list[ReceivedMessage]:
        """Return up to max_messages records in queue order; raise QueueClientError on failure."""
        ...

    async def delete_batch(self, entries: Sequence[DeleteEntry]) -> None:
        """Delete all entries; raise BatchDeleteError (or QueueClientError) on any failure."""
        ...
