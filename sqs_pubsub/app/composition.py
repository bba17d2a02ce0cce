"""Worker composition root: build and lifecycle-manage concrete dependencies.

Composition may: import factories, store port types, manage high-level lifecycle.
"""
from __future__ import annotations

from typing import Any

from loguru import logger

from sqs_pubsub.app.config.settings import SNSSettings, SQSSettings, WorkerSettings
from sqs_pubsub.app.core import SERVICE_NAME
from sqs_pubsub.app.infrastructure.messaging.factory import create_publisher, create_subscriber
from sqs_pubsub.app.infrastructure.messaging.sqs.sqs_subscriber import SQSSubscriber
from sqs_pubsub.app.ports.publisher import Publisher
from sqs_pubsub.app.ports.queue_client import ConfigurationError
from sqs_pubsub.app.ports.subscriber import SubscriberStoppedError


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


class WorkerDependencies:
    """Holds wired worker dependencies and their lifecycle."""

    def __init__(
        self,
        *,
        settings: WorkerSettings,
        sqs_settings: SQSSettings,
        sns_settings: SNSSettings | None = None,
    ) -> None:
        if settings.max_concurrency <= sqs_settings.delete_buffer_size:
            raise ConfigurationError(
                "WORKER_MAX_CONCURRENCY must be greater than SQS_DELETE_BUFFER_SIZE"
            )
        self._settings = settings
        self._sqs_settings = sqs_settings
        self._sns_settings = sns_settings
        self._subscriber: SQSSubscriber | None = None
        self._publisher: Publisher | None = None

    @property
    def settings(self) -> WorkerSettings:
        return self._settings

    @property
    def subscriber(self) -> SQSSubscriber:
        if self._subscriber is None:
            raise RuntimeError("subscriber is not initialized")
        return self._subscriber

    @property
    def publisher(self) -> Publisher | None:
        """Configured only when messages are forwarded (FORWARD_SUBJECT)."""
        return self._publisher

    async def connect(self) -> None:
        self._subscriber = create_subscriber(self._settings, self._sqs_settings)
        await self._subscriber.connect()

        if self._settings.forward_subject:
            self._publisher = create_publisher(
                self._settings, self._sns_settings or SNSSettings()
            )
        _log("worker_dependencies_ready", forwarding=self._publisher is not None)

    async def close(self) -> None:
        if self._subscriber is not None:
            try:
                await self._subscriber.stop()
            except SubscriberStoppedError:
                await self._subscriber.wait_stopped()
            self._subscriber = None
        self._publisher = None


def create_worker_dependencies(
    settings: WorkerSettings | None = None,
    sqs_settings: SQSSettings | None = None,
    sns_settings: SNSSettings | None = None,
) -> WorkerDependencies:
    return WorkerDependencies(
        settings=settings or WorkerSettings(),
        sqs_settings=sqs_settings or SQSSettings(),
        sns_settings=sns_settings,
    )
