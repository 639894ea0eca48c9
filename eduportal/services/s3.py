"""AWS S3: documents exchanged between students and staff."""
import asyncio
import logging
import uuid

import boto3
from botocore.exceptions import ClientError

from eduportal.config import settings
from eduportal.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

_s3 = None


def get_s3():
    global _s3
    if _s3 is None:
        _s3 = boto3.client(
            "s3",
            region_name=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id or None,
            aws_secret_access_key=settings.aws_secret_access_key or None,
        )
    return _s3


def _public_url(key: str) -> str:
    bucket = settings.s3_bucket_files
    return f"https://{bucket}.s3.{settings.aws_region}.amazonaws.com/{key}"


def _put_object_sync(key: str, body: bytes, content_type: str) -> None:
    get_s3().put_object(
        Bucket=settings.s3_bucket_files,
        Key=key,
        Body=body,
        ContentType=content_type or "application/octet-stream",
    )


async def upload_document_to_s3(
    body: bytes,
    *,
    student_id: str,
    filename: str,
    content_type: str,
) -> tuple[str, str]:
    """Upload a student's document; return (public_url, s3_key)."""
    ext = (filename or "").rsplit(".", 1)[-1] if "." in (filename or "") else "bin"
    key = f"eduportal/{student_id}/{uuid.uuid4().hex}.{ext}"
    try:
        await asyncio.to_thread(_put_object_sync, key, body, content_type)
    except ClientError as e:
        logger.error(f"S3 upload failed for {key}: {e}")
        raise StorageUnavailableError("File storage is unavailable, please retry") from e
    return _public_url(key), key


async def delete_from_s3(key: str, bucket: str = settings.s3_bucket_files) -> None:
    """Delete object from S3; a missing object is not an error."""
    try:
        await asyncio.to_thread(get_s3().delete_object, Bucket=bucket, Key=key)
    except ClientError as e:
        logger.warning(f"S3 delete failed for {key}: {e}")
