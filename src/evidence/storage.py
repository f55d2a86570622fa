"""Blob storage for evidence artifacts.

Objects live under a per-user prefix: ``<user_id>/evidence/<evidence_id>/<filename>``.
The pipeline only needs ``put`` and ``signed_url``; anything satisfying
``BlobStorage`` can be injected (tests use an in-memory fake).
"""

from __future__ import annotations

import asyncio
import logging
import re
from functools import lru_cache
from typing import Any, Protocol
from uuid import UUID

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from src.config import settings

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class StorageError(Exception):
    pass


class BlobStorage(Protocol):
    async def put(self, data: bytes, path: str, content_type: str | None = None) -> str: ...

    async def signed_url(self, reference: str, ttl: int) -> str: ...


def evidence_object_path(user_id: UUID, evidence_id: UUID, filename: str | None) -> str:
    safe_name = _UNSAFE_CHARS.sub("_", filename or "upload").strip("._") or "upload"
    return f"{user_id}/evidence/{evidence_id}/{safe_name}"


def _normalize_endpoint(url: str | None) -> str | None:
    """Ensure endpoints include a scheme so boto3 accepts them."""
    if not url:
        return url
    if url.startswith("http://") or url.startswith("https://"):
        return url
    return f"http://{url}"


class S3BlobStorage:
    """S3 / MinIO backed storage. boto3 is blocking, so calls run in a worker thread."""

    def __init__(self, client: Any, bucket: str):
        self.client = client
        self.bucket = bucket

    async def put(self, data: bytes, path: str, content_type: str | None = None) -> str:
        kwargs: dict[str, Any] = {"Bucket": self.bucket, "Key": path, "Body": data}
        if content_type:
            kwargs["ContentType"] = content_type
        try:
            await asyncio.to_thread(self.client.put_object, **kwargs)
        except (BotoCoreError, ClientError) as e:
            logger.error("put_object failed for %s: %s", path, e)
            raise StorageError(f"Failed to store {path}") from e
        return path

    async def signed_url(self, reference: str, ttl: int) -> str:
        try:
            return await asyncio.to_thread(
                self.client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.bucket, "Key": reference},
                ExpiresIn=ttl,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("presign failed for %s: %s", reference, e)
            raise StorageError(f"Failed to sign {reference}") from e


@lru_cache(maxsize=1)
def get_blob_storage() -> S3BlobStorage:
    session = boto3.session.Session(
        aws_access_key_id=settings.STORAGE_ACCESS_KEY,
        aws_secret_access_key=settings.STORAGE_SECRET_KEY,
        region_name=settings.STORAGE_REGION,
    )
    client = session.client(
        "s3",
        endpoint_url=_normalize_endpoint(settings.STORAGE_ENDPOINT_URL),
        config=Config(signature_version="s3v4"),
    )
    return S3BlobStorage(client, settings.STORAGE_BUCKET)
