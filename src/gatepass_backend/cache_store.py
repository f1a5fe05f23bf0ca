"""
Persistent storage for rendered gate pass PDFs.

One entry per gate pass id holds the ETag the PDF was rendered for and the
PDF bytes. Writes replace both together; readers never see a new ETag paired
with old bytes or the other way round.
"""

from __future__ import annotations

import base64
import binascii
import logging
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from omegaconf import DictConfig

from .utils import ensure_directory

logger = logging.getLogger(__name__)


class CacheStoreError(RuntimeError):
    """Lookup or write against the PDF cache failed."""


@dataclass
class CacheEntry:
    gatepass_id: str
    etag: str
    pdf_bytes: bytes
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _deserialize_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


class BaseCacheStore(ABC):
    """Interface every PDF cache backend implements."""

    @abstractmethod
    def get(self, gatepass_id: str) -> Optional[CacheEntry]:
        """Return the cached entry for a gate pass, or None."""

    @abstractmethod
    def upsert(self, gatepass_id: str, etag: str, pdf_bytes: bytes) -> None:
        """Insert or replace the entry for a gate pass."""

    @abstractmethod
    def delete(self, gatepass_id: str) -> bool:
        """Remove the entry; True if something was removed."""


class SqliteCacheStore(BaseCacheStore):
    """
    SQLite-backed PDF cache.

    PDF bytes are stored base64-encoded in a TEXT column. The upsert is a
    single INSERT ... ON CONFLICT statement, so the ETag and the bytes change
    in the same write.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        ensure_directory(self.db_path.parent)
        self._init_db()

    @contextmanager
    def _get_connection(self):
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        except sqlite3.Error as exc:
            raise CacheStoreError(f"Could not open PDF cache at {self.db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise CacheStoreError(f"PDF cache operation failed: {exc}") from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS gatepass_pdf (
                    gatepass_id TEXT PRIMARY KEY,
                    etag TEXT NOT NULL,
                    pdf_base64 TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

    def get(self, gatepass_id: str) -> Optional[CacheEntry]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM gatepass_pdf WHERE gatepass_id = ?", (gatepass_id,)
            ).fetchone()

        if not row:
            return None

        try:
            pdf_bytes = base64.b64decode(row["pdf_base64"], validate=True)
        except binascii.Error as exc:
            raise CacheStoreError(f"Cached PDF for {gatepass_id} is corrupt: {exc}") from exc

        return CacheEntry(
            gatepass_id=row["gatepass_id"],
            etag=row["etag"],
            pdf_bytes=pdf_bytes,
            created_at=_deserialize_datetime(row["created_at"]),
            updated_at=_deserialize_datetime(row["updated_at"]),
        )

    def upsert(self, gatepass_id: str, etag: str, pdf_bytes: bytes) -> None:
        now = _utcnow().isoformat()
        encoded = base64.b64encode(pdf_bytes).decode("ascii")
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO gatepass_pdf (gatepass_id, etag, pdf_base64, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(gatepass_id) DO UPDATE SET
                    etag = excluded.etag,
                    pdf_base64 = excluded.pdf_base64,
                    updated_at = excluded.updated_at
            """, (gatepass_id, etag, encoded, now, now))
        logger.debug(f"Stored PDF for gate pass {gatepass_id} ({len(pdf_bytes)} bytes, etag {etag[:12]})")

    def delete(self, gatepass_id: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM gatepass_pdf WHERE gatepass_id = ?", (gatepass_id,))
            return cursor.rowcount > 0


def create_cache_store(cache_settings: DictConfig) -> BaseCacheStore:
    """
    Instantiate the configured cache backend.

    Args:
        cache_settings: The ``cache`` section of the settings.

    Returns:
        A SQLite store (default) or an S3 store.

    Raises:
        ValueError: For an unknown backend or an S3 backend without a bucket.
    """
    backend = cache_settings.backend

    if backend == "sqlite":
        return SqliteCacheStore(Path(cache_settings.sqlite_path))

    if backend == "s3":
        from .s3_cache_store import S3CacheStore

        bucket = cache_settings.s3.bucket
        if not bucket:
            raise ValueError("S3_BUCKET_NAME must be set when PDF_CACHE_BACKEND=s3")
        return S3CacheStore(bucket=bucket, prefix=cache_settings.s3.prefix)

    raise ValueError(f"Unsupported cache backend: {backend!r}")
