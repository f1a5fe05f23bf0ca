"""
S3 backend for the gate pass PDF cache.

Each gate pass is one object, ``<prefix><gatepass_id>.pdf``, with the ETag it
was rendered for kept in the object's user metadata. A single PUT writes body
and metadata together, and a single GET returns them together, so the ETag
and the bytes can never be observed out of step.

The bucket name comes from the S3_BUCKET_NAME environment variable (through
the ``cache.s3.bucket`` setting). Credentials follow the usual boto3 chain.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .cache_store import BaseCacheStore, CacheEntry, CacheStoreError

logger = logging.getLogger(__name__)

ETAG_METADATA_KEY = "gatepass-etag"
CREATED_AT_METADATA_KEY = "gatepass-created-at"

_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


def _is_missing(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") in _MISSING_CODES


class S3CacheStore(BaseCacheStore):
    def __init__(self, bucket: str, prefix: str = "gatepass-pdf/", client: Any = None) -> None:
        """
        Args:
            bucket: Target bucket name
            prefix: Key prefix for cached PDFs
            client: Optional pre-built S3 client (created lazily otherwise)
        """
        self.bucket = bucket
        self.prefix = prefix
        self._client = client

    def _get_s3_client(self):
        if self._client is None:
            self._client = boto3.client("s3")
        return self._client

    def object_key(self, gatepass_id: str) -> str:
        return f"{self.prefix}{gatepass_id}.pdf"

    def get(self, gatepass_id: str) -> Optional[CacheEntry]:
        key = self.object_key(gatepass_id)
        try:
            response = self._get_s3_client().get_object(Bucket=self.bucket, Key=key)
            pdf_bytes = response["Body"].read()
        except ClientError as e:
            if _is_missing(e):
                return None
            logger.error(f"S3 cache lookup failed for s3://{self.bucket}/{key}: {e}")
            raise CacheStoreError(f"S3 cache lookup failed: {e}") from e
        except BotoCoreError as e:
            raise CacheStoreError(f"S3 cache lookup failed: {e}") from e

        metadata = response.get("Metadata", {})
        etag = metadata.get(ETAG_METADATA_KEY)
        if not etag:
            # Object written by something else; treat as a miss so it gets replaced
            logger.warning(f"s3://{self.bucket}/{key} has no {ETAG_METADATA_KEY} metadata")
            return None

        created_raw = metadata.get(CREATED_AT_METADATA_KEY)
        return CacheEntry(
            gatepass_id=gatepass_id,
            etag=etag,
            pdf_bytes=pdf_bytes,
            created_at=datetime.fromisoformat(created_raw) if created_raw else None,
            updated_at=response.get("LastModified"),
        )

    def _existing_created_at(self, key: str) -> Optional[str]:
        try:
            head = self._get_s3_client().head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_missing(e):
                return None
            raise
        return head.get("Metadata", {}).get(CREATED_AT_METADATA_KEY)

    def upsert(self, gatepass_id: str, etag: str, pdf_bytes: bytes) -> None:
        key = self.object_key(gatepass_id)
        try:
            created_at = self._existing_created_at(key) or datetime.now(timezone.utc).isoformat()
            self._get_s3_client().put_object(
                Bucket=self.bucket,
                Key=key,
                Body=pdf_bytes,
                ContentType="application/pdf",
                Metadata={ETAG_METADATA_KEY: etag, CREATED_AT_METADATA_KEY: created_at},
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 cache write failed for s3://{self.bucket}/{key}: {e}")
            raise CacheStoreError(f"S3 cache write failed: {e}") from e
        logger.info(f"Uploaded PDF for gate pass {gatepass_id} to s3://{self.bucket}/{key}")

    def delete(self, gatepass_id: str) -> bool:
        key = self.object_key(gatepass_id)
        try:
            if not self._exists(key):
                return False
            self._get_s3_client().delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise CacheStoreError(f"S3 cache delete failed: {e}") from e
        return True

    def _exists(self, key: str) -> bool:
        try:
            self._get_s3_client().head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_missing(e):
                return False
            raise
        return True
