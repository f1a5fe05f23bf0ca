"""
SQLite database for gate pass records.

This module provides a simple SQLite-based persistence layer for gate passes
and the destinations they are sent to. Each gate pass is stored as a JSON
document keyed by its id, alongside the timestamps the API reports. The PDF pipeline reads records from here before
rendering, so the stored snapshot is always what ends up on paper.
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from .utils import ensure_directory


# Default database path
DEFAULT_DB_PATH = Path("data/gatepass.db")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Serialize datetime to ISO format string."""
    return dt.isoformat() if dt else None


def _deserialize_datetime(s: str) -> Optional[datetime]:
    """Deserialize ISO format string to datetime."""
    if not s:
        return None
    return datetime.fromisoformat(s)


class GatePassDatabase:
    """
    SQLite database for gate pass persistence.

    Thread-safe: a connection is opened per operation and SQLite handles
    concurrent access with WAL mode.
    """

    def __init__(self, db_path: Path = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        ensure_directory(self.db_path.parent)
        self._init_db()

    @contextmanager
    def _get_connection(self):
        """Get a database connection with proper settings."""
        conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS gatepasses (
                    id TEXT PRIMARY KEY,
                    gatepass_no TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_gatepasses_created_at
                ON gatepasses(created_at DESC)
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS destinations (
                    id TEXT PRIMARY KEY,
                    code TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)

    def create(self, gatepass: Dict[str, Any]) -> bool:
        """
        Store a new gate pass.

        Args:
            gatepass: JSON-compatible gate pass data (camelCase keys) with an ``id``

        Returns:
            True if stored, False if a gate pass with this id already exists
        """
        now = _serialize_datetime(_utcnow())
        try:
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO gatepasses (id, gatepass_no, payload, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                """, (
                    gatepass["id"],
                    gatepass.get("gatepassNo", ""),
                    json.dumps(gatepass),
                    now,
                    now,
                ))
        except sqlite3.IntegrityError:
            return False
        return True

    def update(self, gatepass: Dict[str, Any]) -> bool:
        """
        Replace an existing gate pass, keeping who created it.

        Args:
            gatepass: JSON-compatible gate pass data with an ``id``

        Returns:
            True if updated, False if not found
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT payload FROM gatepasses WHERE id = ?", (gatepass["id"],)
            ).fetchone()

            if not row:
                return False

            previous = json.loads(row["payload"])
            merged = dict(gatepass)
            for key in ("createdBy", "modifiedBy", "modifiedAt", "isEnable", "returnable"):
                # Absent on an update means "unchanged", like COALESCE
                if merged.get(key) is None and previous.get(key) is not None:
                    merged[key] = previous[key]

            conn.execute(
                "UPDATE gatepasses SET gatepass_no = ?, payload = ?, updated_at = ? WHERE id = ?",
                (
                    merged.get("gatepassNo", ""),
                    json.dumps(merged),
                    _serialize_datetime(_utcnow()),
                    gatepass["id"],
                )
            )
        return True

    def get(self, gatepass_id: str) -> Optional[Dict[str, Any]]:
        """
        Retrieve a gate pass by ID.

        Returns:
            Gate pass data dictionary or None if not found
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM gatepasses WHERE id = ?", (gatepass_id,)
            ).fetchone()

            if not row:
                return None

            return self._row_to_dict(row)

    def list(self) -> List[Dict[str, Any]]:
        """
        List all gate passes ordered by creation time (newest first).
        """
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM gatepasses ORDER BY created_at DESC, rowid DESC"
            ).fetchall()

            return [self._row_to_dict(row) for row in rows]

    def delete(self, gatepass_id: str) -> bool:
        """
        Delete a gate pass record.

        Returns:
            True if deleted, False if not found
        """
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM gatepasses WHERE id = ?", (gatepass_id,))
            return cursor.rowcount > 0

    def create_destination(self, name: str, code: str) -> Optional[str]:
        """
        Register a destination gate passes can be sent to.

        Returns:
            The new destination id, or None if the code is already taken
        """
        destination_id = uuid4().hex
        try:
            with self._get_connection() as conn:
                conn.execute(
                    "INSERT INTO destinations (id, code, name, created_at) VALUES (?, ?, ?, ?)",
                    (destination_id, code, name, _serialize_datetime(_utcnow())),
                )
        except sqlite3.IntegrityError:
            return None
        return destination_id

    def list_destinations(self) -> List[Dict[str, Any]]:
        """List destinations ordered by name."""
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM destinations ORDER BY name, code").fetchall()

        return [
            {
                "destinationId": row["id"],
                "destinationName": row["name"],
                "destinationCode": row["code"],
                "createdAt": _deserialize_datetime(row["created_at"]),
            }
            for row in rows
        ]

    def _row_to_dict(self, row: sqlite3.Row) -> Dict[str, Any]:
        """Convert a database row to a gate pass dictionary."""
        data = json.loads(row["payload"])
        data["id"] = row["id"]
        data["createdAt"] = _deserialize_datetime(row["created_at"])
        data["updatedAt"] = _deserialize_datetime(row["updated_at"])
        return data
