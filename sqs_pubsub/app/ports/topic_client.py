"""Topic client port: one-shot publish to a remote topic."""
from __future__ import annotations

from typing import Protocol, runtime_checkable


class PublishError(Exception):
    """Raised when the topic rejects a publish call."""


@runtime_checkable
class TopicClient(Protocol):
    async def publish(self, subject: str, message: str) -> str:
        """Publish message under subject; return the remote message id."""
        ...
