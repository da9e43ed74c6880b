"""AWS S3 blob store: report photos, CSV sheets and PDF documents."""
import asyncio
import logging
import os
import time
import uuid

import boto3
from botocore.exceptions import ClientError

from app.config import settings

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


def file_type_for(mime_type: str) -> str:
    mime_type = (mime_type or "").lower()
    if mime_type.startswith("image/"):
        return "image"
    if mime_type in ("text/csv", "application/csv"):
        return "csv"
    if mime_type == "application/pdf":
        return "pdf"
    return "other"


def build_key(folder: str, filename: str) -> str:
    """``<folder>/<epoch ms>-<random hex><ext>``; the original name never reaches the key."""
    folder = (folder or "uploads").strip("/") or "uploads"
    ext = os.path.splitext(filename or "")[1].lower()
    return f"{folder}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:24]}{ext}"


def public_url(key: str, bucket: str = settings.s3_bucket_uploads) -> str:
    return f"https://{bucket}.s3.{settings.aws_region}.amazonaws.com/{key}"


def _put_sync(bucket: str, key: str, body: bytes, content_type: str) -> None:
    get_s3().put_object(Bucket=bucket, Key=key, Body=body, ContentType=content_type)


async def put_object(key: str, body: bytes, content_type: str, bucket: str = settings.s3_bucket_uploads) -> str:
    """Upload bytes; return the object's public URL."""
    await asyncio.to_thread(_put_sync, bucket, key, body, content_type or "application/octet-stream")
    return public_url(key, bucket)


def _get_sync(bucket: str, key: str) -> bytes:
    response = get_s3().get_object(Bucket=bucket, Key=key)
    return response["Body"].read()


async def get_object(key: str, bucket: str = settings.s3_bucket_uploads) -> bytes:
    return await asyncio.to_thread(_get_sync, bucket, key)


MISSING_OBJECT_CODES = ("NoSuchKey", "404", "NotFound")


async def delete_object(key: str, bucket: str = settings.s3_bucket_uploads) -> None:
    """Delete object from S3. An already missing object counts as deleted; other S3 errors propagate."""
    try:
        await asyncio.to_thread(get_s3().delete_object, Bucket=bucket, Key=key)
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") not in MISSING_OBJECT_CODES:
            raise
        logger.info("S3 object %s already gone", key)


async def presigned_get_url(
    key: str,
    bucket: str = settings.s3_bucket_uploads,
    minutes: int = settings.s3_signed_url_expire_minutes,
) -> str:
    return await asyncio.to_thread(
        get_s3().generate_presigned_url,
        "get_object",
        Params={"Bucket": bucket, "Key": key},
        ExpiresIn=minutes * 60,
    )


async def presigned_put_url(
    key: str,
    content_type: str,
    minutes: int = settings.s3_upload_url_expire_minutes,
) -> str:
    """Write URL a mobile client can PUT the file to directly."""
    return await asyncio.to_thread(
        get_s3().generate_presigned_url,
        "put_object",
        Params={"Bucket": settings.s3_bucket_uploads, "Key": key, "ContentType": content_type},
        ExpiresIn=minutes * 60,
    )
