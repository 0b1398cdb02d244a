"""Idempotent bucket create/delete helpers used to obtain a ready upload target."""

from common.constants import BUCKET_ALREADY_OWNED_CODE, NO_SUCH_BUCKET_CODE
from common.exceptions import AwsProtocolError
from common.logging_config import get_logger
from uploader.s3_client import S3Client
from uploader.schemas import build_create_bucket_body

logger = get_logger(__name__)


async def create_bucket_if_absent(client: S3Client, name: str) -> bool:
    """
    Create a bucket, treating "already owned by you" as success.

    Args:
        client: Signed S3 client
        name: Bucket name

    Returns:
        True if the bucket was created, False if it already existed
    """
    body = build_create_bucket_body(client.config.region)
    headers = {"Content-Type": "application/xml"} if body else None
    try:
        await client.request_xml("PUT", client.bucket_url(name) + "/", headers=headers, content=body)
    except AwsProtocolError as e:
        if e.code != BUCKET_ALREADY_OWNED_CODE:
            raise
        logger.info(f"Bucket already exists: {name}")
        return False

    logger.info(f"Created bucket: {name}")
    return True


async def delete_bucket_if_exists(client: S3Client, name: str) -> bool:
    """
    Delete a bucket, treating "no such bucket" as success.

    Returns:
        True if the bucket was deleted, False if it did not exist
    """
    try:
        await client.request_xml("DELETE", client.bucket_url(name) + "/")
    except AwsProtocolError as e:
        if e.code != NO_SUCH_BUCKET_CODE:
            raise
        logger.info(f"Bucket did not exist: {name}")
        return False

    logger.info(f"Removed bucket: {name}")
    return True
