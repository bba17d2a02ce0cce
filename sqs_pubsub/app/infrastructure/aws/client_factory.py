"""boto3 client construction with explicit or environment-sourced credentials."""
from __future__ import annotations

from typing import Any

import boto3
from botocore.config import Config
from loguru import logger

from sqs_pubsub.app.config.settings import AWSSettings


def create_aws_client(service: str, settings: AWSSettings, *, config: Config | None = None) -> Any:
    """Build a boto3 client for service.

    An explicit access key pair wins; otherwise boto3 resolves credentials from the
    environment (AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY, profile, instance role).
    """
    kwargs: dict[str, Any] = {"region_name": settings.region or None}
    if settings.access_key:
        kwargs["aws_access_key_id"] = settings.access_key
        kwargs["aws_secret_access_key"] = settings.secret_key
        if settings.session_token:
            kwargs["aws_session_token"] = settings.session_token
    if settings.endpoint_url:
        kwargs["endpoint_url"] = settings.endpoint_url
    if config is not None:
        kwargs["config"] = config
    try:
        client = boto3.client(service, **kwargs)
    except Exception as e:
        logger.error("failed to initialize {} client: {}", service, e)
        raise
    logger.debug("{} client initialized (explicit credentials: {})", service, bool(settings.access_key))
    return client
