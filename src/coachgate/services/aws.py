from typing import Any
import boto3
import os
from boto3.resources.base import ServiceResource
from botocore.config import Config
from functools import cache


def get_region_name() -> str | None:
    """
    Get the AWS region name from environment variable.
    Uses AWS_REGION if set, otherwise lets boto3 use its default region resolution.

    Returns:
        str: The AWS region name or None to let boto3 handle region resolution.
    """
    return os.getenv("AWS_REGION")


@cache
def get_boto_config() -> Config:
    """
    Client configuration shared by every AWS call.

    A store that stops answering must surface as an error instead of leaving
    the request hanging, so connect/read timeouts and retries are bounded.
    """
    return Config(
        connect_timeout=float(os.getenv("AWS_CONNECT_TIMEOUT", "2")),
        read_timeout=float(os.getenv("AWS_READ_TIMEOUT", "5")),
        retries={
            "max_attempts": int(os.getenv("AWS_MAX_ATTEMPTS", "3")),
            "mode": "standard",
        },
    )


@cache
def get_dynamodb_resource() -> ServiceResource:
    """
    Get a DynamoDB resource instance.

    Returns:
        boto3.resources.base.ServiceResource: The DynamoDB resource.
    """
    region = get_region_name()
    if region:
        return boto3.resource("dynamodb", region_name=region, config=get_boto_config())
    else:
        return boto3.resource("dynamodb", config=get_boto_config())


@cache
def get_ddb_table(table_name: str) -> Any:
    return get_dynamodb_resource().Table(table_name)


@cache
def get_s3_client() -> Any:
    region = get_region_name()
    if region:
        return boto3.client("s3", region_name=region, config=get_boto_config())
    return boto3.client("s3", config=get_boto_config())


def clear_aws_caches() -> None:
    """Drop cached clients, e.g. after the environment or the AWS mock changed."""
    get_boto_config.cache_clear()
    get_dynamodb_resource.cache_clear()
    get_ddb_table.cache_clear()
    get_s3_client.cache_clear()
