"""In-memory publisher for tests and local mode. Stores the raw bytes it was given."""
from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel


class InMemoryPublisher:
    def __init__(self) -> None:
        self.messages: list[tuple[str, bytes]] = []

    async def publish(self, key: str, message: dict[str, Any] | BaseModel) -> None:
        if isinstance(message, BaseModel):
            await self.publish_raw(key, message.model_dump_json().encode())
        else:
            await self.publish_raw(key, json.dumps(message, separators=(",", ":")).encode())

    async def publish_raw(self, key: str, data: bytes) -> None:
        self.messages.append((key, data))
