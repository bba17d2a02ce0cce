"""Asyncio SQS subscriber and SNS publisher."""
from sqs_pubsub.app.config.settings import SNSSettings, SQSSettings
from sqs_pubsub.app.infrastructure.messaging.sns.sns_publisher import SNSPublisher
from sqs_pubsub.app.infrastructure.messaging.sqs.sqs_message import SQSMessage
from sqs_pubsub.app.infrastructure.messaging.sqs.sqs_subscriber import SQSSubscriber

__all__ = ("SNSPublisher", "SNSSettings", "SQSMessage", "SQSSettings", "SQSSubscriber")
