"""Port: subscriber and received-message contracts. Implementations live in infrastructure."""
from __future__ import annotations

from typing import AsyncIterator, Protocol


class SubscriberStoppedError(Exception):
    """Raised by stop() on a stopped subscriber, or by done() once deletes are closed."""


class MessageAlreadyDoneError(RuntimeError):
    """Raised when done() is called twice on the same message."""


class SubscriberMessage(Protocol):
    """A received message. done() is single-use: call it once, after processing."""

    @property
    def message_id(self) -> str: ...

    def message(self) -> bytes: ...

    async def done(self) -> None: ...

    @property
    def finished(self) -> bool: ...

    def release(self) -> None:
        """Abandon the message undeleted so it is redelivered. Use instead of done()."""
        ...


class Subscriber(Protocol):
    async def connect(self) -> None: ...

    def start(self) -> AsyncIterator[SubscriberMessage]:
        """Start consuming. The iterator ends on stop() or on a fatal error; check err then."""
        ...

    async def stop(self) -> None: ...

    @property
    def err(self) -> Exception | None: ...
