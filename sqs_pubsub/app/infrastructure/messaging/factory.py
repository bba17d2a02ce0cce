"""Messaging factories: the only place that imports concrete subscribers and publishers."""
from __future__ import annotations

from sqs_pubsub.app.config.settings import SNSSettings, SQSSettings, WorkerSettings
from sqs_pubsub.app.infrastructure.messaging.inmemory.in_memory_publisher import InMemoryPublisher
from sqs_pubsub.app.infrastructure.messaging.sns.sns_publisher import SNSPublisher
from sqs_pubsub.app.infrastructure.messaging.sqs.sqs_subscriber import SQSSubscriber
from sqs_pubsub.app.ports.publisher import Publisher


def create_subscriber(worker_settings: WorkerSettings, settings: SQSSettings) -> SQSSubscriber:
    backend = worker_settings.subscriber_backend.strip().lower()

    if backend == "sqs":
        return SQSSubscriber(settings)

    raise ValueError(f"Unsupported subscriber backend: {backend}")


def create_publisher(worker_settings: WorkerSettings, settings: SNSSettings) -> Publisher:
    backend = worker_settings.publisher_backend.strip().lower()

    if backend == "sns":
        return SNSPublisher(settings)

    if backend == "inmemory":
        return InMemoryPublisher()

    raise ValueError(f"Unsupported publisher backend: {backend}")
