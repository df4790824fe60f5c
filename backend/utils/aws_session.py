"""
AWS Session Factory

Creates boto3 sessions and clients from the default credential chain
(IAM role > environment > shared credentials file). Explicit keys are never
passed through application settings.
"""

from typing import Optional, Any

import boto3
from botocore.config import Config
import structlog

logger = structlog.get_logger(__name__)

BEDROCK_RUNTIME = "bedrock-runtime"
DEFAULT_AWS_REGION = "us-east-1"


def create_aws_session(
    region_name: Optional[str] = None,
    profile_name: Optional[str] = None,
) -> boto3.Session:
    """
    Create an AWS session using the default credential chain.

    Args:
        region_name: AWS region (defaults to settings.aws_region)
        profile_name: Optional AWS profile name for local development
    """
    if region_name is None:
        from backend.config.settings import get_settings
        region_name = get_settings().aws_region or DEFAULT_AWS_REGION

    session_kwargs = {"region_name": region_name}
    if profile_name:
        session_kwargs["profile_name"] = profile_name

    session = boto3.Session(**session_kwargs)

    logger.debug(
        "aws_session_created",
        region=region_name,
        profile=profile_name,
        credential_method="default_chain"
    )

    return session


def create_aws_client(
    service_name: str,
    region_name: Optional[str] = None,
    config: Optional[Config] = None,
) -> Any:
    """
    Create an AWS service client using the default credential chain.

    Example:
        bedrock = create_aws_client(BEDROCK_RUNTIME, config=get_default_retry_config())
    """
    session = create_aws_session(region_name=region_name)

    client_kwargs = {}
    if config:
        client_kwargs["config"] = config

    return session.client(service_name, **client_kwargs)


def get_default_retry_config(
    max_attempts: int = 1,
    mode: str = "standard",
    read_timeout: float = 60.0,
    connect_timeout: float = 10.0,
) -> Config:
    """
    Standard botocore Config with retry and timeout settings.

    ``max_attempts`` counts the first call, so 1 means no retries.
    """
    return Config(
        retries={
            "max_attempts": max_attempts,
            "mode": mode,
        },
        read_timeout=read_timeout,
        connect_timeout=connect_timeout,
    )
