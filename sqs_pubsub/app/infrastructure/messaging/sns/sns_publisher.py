"""SNS publisher: serialize, base64-encode, publish with the key as the subject."""
from __future__ import annotations

import base64
import json
import time
from typing import Any

from loguru import logger
from pydantic import BaseModel

from sqs_pubsub.app.config.settings import SNSSettings
from sqs_pubsub.app.core import SERVICE_NAME
from sqs_pubsub.app.infrastructure.aws.client_factory import create_aws_client
from sqs_pubsub.app.infrastructure.aws.sns_client import SNSTopicClient
from sqs_pubsub.app.ports.queue_client import ConfigurationError
from sqs_pubsub.app.ports.topic_client import TopicClient


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


class SNSPublisher:
    """Publisher implementation for an SNS topic.

    Without an explicit key pair in settings, credentials come from the environment
    (AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY or any other boto3 source).
    """

    def __init__(self, settings: SNSSettings, topic_client: TopicClient | None = None) -> None:
        if not settings.topic:
            raise ConfigurationError("SNS topic name is required")
        if not settings.region:
            raise ConfigurationError("SNS region is required")
        self._topic = settings.topic
        self._client: TopicClient = topic_client or SNSTopicClient(
            create_aws_client("sns", settings), settings.topic
        )

    async def publish(self, key: str, message: dict[str, Any] | BaseModel) -> None:
        """Serialize message to JSON and publish it under key."""
        if isinstance(message, BaseModel):
            data = message.model_dump_json().encode()
        else:
            data = json.dumps(message, separators=(",", ":")).encode()
        await self.publish_raw(key, data)

    async def publish_raw(self, key: str, data: bytes) -> None:
        start = time.perf_counter()
        message_id = await self._client.publish(key, base64.b64encode(data).decode("ascii"))
        latency_ms = (time.perf_counter() - start) * 1000
        _log(
            "sns_publish_success",
            topic=self._topic,
            subject=key,
            message_id=message_id,
            latency_ms=round(latency_ms, 2),
        )
