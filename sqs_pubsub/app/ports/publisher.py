"""Port: messaging publish contract."""
from __future__ import annotations

from typing import Any, Protocol

from pydantic import BaseModel


class Publisher(Protocol):
    async def publish(self, key: str, message: dict[str, Any] | BaseModel) -> None: ...

    async def publish_raw(self, key: str, data: bytes) -> None: ...
