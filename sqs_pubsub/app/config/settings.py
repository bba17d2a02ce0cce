from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from sqs_pubsub.app.constants import (
    DEFAULT_SQS_CONSUME_BASE64,
    DEFAULT_SQS_DELETE_BUFFER_SIZE,
    DEFAULT_SQS_MAX_MESSAGES,
    DEFAULT_SQS_SLEEP_INTERVAL_SECONDS,
    DEFAULT_SQS_TIMEOUT_SECONDS,
)


class AWSSettings(BaseSettings):
    """Region and credentials. Without an explicit key pair boto3's default chain is used."""

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", populate_by_name=True, frozen=True
    )

    region: str = Field("", validation_alias="AWS_REGION")
    access_key: str = Field("", validation_alias="AWS_ACCESS_KEY_ID")
    secret_key: str = Field("", validation_alias="AWS_SECRET_ACCESS_KEY")
    session_token: str = Field("", validation_alias="AWS_SESSION_TOKEN")
    # Set for localstack/elasticmq style endpoints.
    endpoint_url: str = Field("", validation_alias="AWS_ENDPOINT_URL")


class SQSSettings(AWSSettings):
    queue_name: str = Field("", validation_alias="SQS_QUEUE_NAME")
    # When set, GetQueueUrl is skipped.
    queue_url: str = Field("", validation_alias="SQS_QUEUE_URL")
    queue_owner_account_id: str = Field("", validation_alias="SQS_QUEUE_OWNER_ACCOUNT_ID")

    max_messages: int = Field(
        DEFAULT_SQS_MAX_MESSAGES, ge=1, le=10, validation_alias="SQS_MAX_MESSAGES"
    )
    timeout_seconds: int = Field(
        DEFAULT_SQS_TIMEOUT_SECONDS, ge=0, le=20, validation_alias="SQS_TIMEOUT_SECONDS"
    )
    sleep_interval_seconds: float = Field(
        DEFAULT_SQS_SLEEP_INTERVAL_SECONDS, ge=0, validation_alias="SQS_SLEEP_INTERVAL_SECONDS"
    )
    delete_buffer_size: int = Field(
        DEFAULT_SQS_DELETE_BUFFER_SIZE, ge=0, validation_alias="SQS_DELETE_BUFFER_SIZE"
    )
    consume_base64: bool = Field(DEFAULT_SQS_CONSUME_BASE64, validation_alias="SQS_CONSUME_BASE64")
    # None waits for every in-flight message to be done()'d before stop() returns.
    drain_timeout_seconds: float | None = Field(
        None, ge=0, validation_alias="SQS_DRAIN_TIMEOUT_SECONDS"
    )

    initial_backoff_seconds: float = Field(1.0, ge=0, validation_alias="INITIAL_BACKOFF_SECONDS")
    max_backoff_seconds: float = Field(30.0, ge=0, validation_alias="MAX_BACKOFF_SECONDS")
    backoff_multiplier: float = Field(2.0, ge=1, validation_alias="BACKOFF_MULTIPLIER")
    max_connection_attempts: int = Field(1, ge=1, validation_alias="MAX_CONNECTION_ATTEMPTS")


class SNSSettings(AWSSettings):
    topic: str = Field("", validation_alias="SNS_TOPIC_ARN")


class WorkerSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    subscriber_backend: str = Field("sqs", validation_alias="SUBSCRIBER_BACKEND")
    publisher_backend: str = Field("sns", validation_alias="PUBLISHER_BACKEND")
    # Subject used when the worker republishes processed messages; empty disables it.
    forward_subject: str = Field("", validation_alias="FORWARD_SUBJECT")
    # Messages processed at once. Must exceed SQS_DELETE_BUFFER_SIZE or done() never returns.
    max_concurrency: int = Field(10, ge=1, validation_alias="WORKER_MAX_CONCURRENCY")
