"""SNS adapter for the TopicClient port."""
from __future__ import annotations

import asyncio
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from sqs_pubsub.app.ports.topic_client import PublishError


class SNSTopicClient:
    def __init__(self, client: Any, topic_arn: str) -> None:
        self._client = client
        self._topic_arn = topic_arn

    async def publish(self, subject: str, message: str) -> str:
        try:
            resp = await asyncio.to_thread(
                self._client.publish,
                TopicArn=self._topic_arn,
                Subject=subject,
                Message=message,
            )
        except (BotoCoreError, ClientError) as e:
            raise PublishError(f"sns publish to {self._topic_arn} failed: {e}") from e
        return resp.get("MessageId", "")
