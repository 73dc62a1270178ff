"""SQLite Session Store.

Persists, per device:
- Configuration (name, status, webhook settings, pairing payload)
- Message history (inbound and outbound)
- Counters (messages sent/received, webhook calls)
- Append-only operator log
"""

from __future__ import annotations

import sqlite3
import threading
import time
from pathlib import Path
from typing import Any

from wamanager.config.constants import LIMITS
from wamanager.exceptions import StoreError
from wamanager.models import MessageRecord

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS devices (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    phone_number TEXT,
    status TEXT DEFAULT 'disconnected',
    webhook_url TEXT,
    webhook_enabled INTEGER DEFAULT 0,
    webhook_response_enabled INTEGER DEFAULT 0,
    webhook_body_template TEXT,
    webhook_response_path TEXT,
    qr_code TEXT,
    created_at INTEGER DEFAULT (strftime('%s', 'now')),
    updated_at INTEGER DEFAULT (strftime('%s', 'now'))
);

CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    device_id TEXT NOT NULL,
    message_id TEXT,
    from_number TEXT,
    to_number TEXT,
    message_body TEXT,
    message_type TEXT,
    timestamp INTEGER,
    direction TEXT,
    FOREIGN KEY (device_id) REFERENCES devices(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS stats (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id TEXT NOT NULL,
    messages_sent INTEGER DEFAULT 0,
    messages_received INTEGER DEFAULT 0,
    webhook_calls INTEGER DEFAULT 0,
    last_activity INTEGER,
    FOREIGN KEY (device_id) REFERENCES devices(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id TEXT,
    level TEXT,
    message TEXT,
    timestamp INTEGER DEFAULT (strftime('%s', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_messages_device ON messages(device_id);
CREATE INDEX IF NOT EXISTS idx_messages_timestamp ON messages(timestamp);
CREATE INDEX IF NOT EXISTS idx_stats_device ON stats(device_id);
CREATE INDEX IF NOT EXISTS idx_logs_device ON logs(device_id);
"""

# Columns update_device() may touch
DEVICE_COLUMNS = frozenset({
    "name",
    "phone_number",
    "status",
    "webhook_url",
    "webhook_enabled",
    "webhook_response_enabled",
    "webhook_body_template",
    "webhook_response_path",
    "qr_code",
})

STAT_FIELDS = frozenset({"messages_sent", "messages_received", "webhook_calls"})


def _now() -> int:
    return int(time.time())


class SessionStore:
    """SQLite database wrapper for device configuration and activity.

    Provides:
    - WAL mode for crash recovery (file databases)
    - Parameterized queries; column names checked against allow-lists
    - A single connection guarded by a lock, shared by the event loop
      and API worker threads
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        """Open the store.

        Args:
            db_path: SQLite file path, or ":memory:" for a private database
        """
        self._db_path = db_path
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = None
        self._initialize()

    def _initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        if self._db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(SCHEMA_SQL)
        self._conn.commit()

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("connect", "store is closed")
        return self._conn

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> SessionStore:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _write(self, operation: str, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        with self._lock:
            try:
                cursor = self.connection.execute(sql, params)
                self.connection.commit()
                return cursor
            except sqlite3.Error as e:
                self.connection.rollback()
                raise StoreError(operation, str(e)) from e

    def _fetch_one(self, sql: str, params: tuple[Any, ...] = ()) -> dict[str, Any] | None:
        with self._lock:
            row = self.connection.execute(sql, params).fetchone()
        return dict(row) if row else None

    def _fetch_all(self, sql: str, params: tuple[Any, ...] = ()) -> list[dict[str, Any]]:
        with self._lock:
            rows = self.connection.execute(sql, params).fetchall()
        return [dict(row) for row in rows]

    # -------------------------------------------------------------------------
    # Devices
    # -------------------------------------------------------------------------

    def create_device(self, device_id: str, name: str) -> dict[str, Any]:
        """Insert a device and its stats row."""
        with self._lock:
            try:
                self.connection.execute(
                    "INSERT INTO devices (id, name) VALUES (?, ?)", (device_id, name)
                )
                self.connection.execute(
                    "INSERT INTO stats (device_id) VALUES (?)", (device_id,)
                )
                self.connection.commit()
            except sqlite3.Error as e:
                self.connection.rollback()
                raise StoreError("create_device", str(e)) from e
        return {"id": device_id, "name": name, "status": "disconnected"}

    def find_all_devices(self) -> list[dict[str, Any]]:
        """All devices, newest first."""
        return self._fetch_all("SELECT * FROM devices ORDER BY created_at DESC, rowid DESC")

    def find_device(self, device_id: str) -> dict[str, Any] | None:
        return self._fetch_one("SELECT * FROM devices WHERE id = ?", (device_id,))

    def update_device(self, device_id: str, fields: dict[str, Any]) -> None:
        """Update a subset of device columns; always bumps updated_at.

        Raises:
            StoreError: If a field is not a known device column
        """
        unknown = set(fields) - DEVICE_COLUMNS
        if unknown:
            raise StoreError("update_device", f"unknown columns: {sorted(unknown)}")

        assignments = [f"{column} = ?" for column in fields]
        values: list[Any] = [
            int(v) if isinstance(v, bool) else v for v in fields.values()
        ]
        assignments.append("updated_at = ?")
        values.append(_now())
        values.append(device_id)

        self._write(
            "update_device",
            f"UPDATE devices SET {', '.join(assignments)} WHERE id = ?",
            tuple(values),
        )

    def delete_device(self, device_id: str) -> None:
        self._write("delete_device", "DELETE FROM devices WHERE id = ?", (device_id,))

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    def create_message(self, record: MessageRecord) -> None:
        self._write(
            "create_message",
            """
            INSERT INTO messages (id, device_id, message_id, from_number, to_number,
                                  message_body, message_type, timestamp, direction)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.device_id,
                record.external_message_id,
                record.from_address,
                record.to_address,
                record.body,
                record.message_type,
                record.timestamp,
                record.direction.value,
            ),
        )

    def find_messages(
        self, device_id: str, limit: int = LIMITS.DEFAULT_QUERY_LIMIT
    ) -> list[dict[str, Any]]:
        """Most recent messages of a device."""
        return self._fetch_all(
            "SELECT * FROM messages WHERE device_id = ? ORDER BY timestamp DESC LIMIT ?",
            (device_id, limit),
        )

    # -------------------------------------------------------------------------
    # Stats
    # -------------------------------------------------------------------------

    def get_stats(self, device_id: str) -> dict[str, Any] | None:
        return self._fetch_one("SELECT * FROM stats WHERE device_id = ?", (device_id,))

    def increment_stat(self, device_id: str, field: str) -> None:
        """Add one to a device counter and stamp last_activity.

        Raises:
            StoreError: If field is not a counter
        """
        if field not in STAT_FIELDS:
            raise StoreError("increment_stat", f"unknown counter: {field}")
        self._write(
            "increment_stat",
            f"UPDATE stats SET {field} = {field} + 1, last_activity = ? WHERE device_id = ?",
            (_now(), device_id),
        )

    def get_global_stats(self) -> dict[str, Any]:
        """Totals across all devices."""
        row = self._fetch_one(
            """
            SELECT
                COUNT(DISTINCT device_id) AS total_devices,
                COALESCE(SUM(messages_sent), 0) AS total_sent,
                COALESCE(SUM(messages_received), 0) AS total_received,
                COALESCE(SUM(webhook_calls), 0) AS total_webhooks
            FROM stats
            """
        )
        return row or {}

    # -------------------------------------------------------------------------
    # Logs
    # -------------------------------------------------------------------------

    def create_log(self, device_id: str, level: str, message: str) -> None:
        self._write(
            "create_log",
            "INSERT INTO logs (device_id, level, message, timestamp) VALUES (?, ?, ?, ?)",
            (device_id, level, message, _now()),
        )

    def find_recent_logs(self, limit: int = LIMITS.DEFAULT_QUERY_LIMIT) -> list[dict[str, Any]]:
        return self._fetch_all(
            "SELECT * FROM logs ORDER BY timestamp DESC, id DESC LIMIT ?", (limit,)
        )

    def find_device_logs(
        self, device_id: str, limit: int = LIMITS.DEFAULT_QUERY_LIMIT
    ) -> list[dict[str, Any]]:
        return self._fetch_all(
            "SELECT * FROM logs WHERE device_id = ? ORDER BY timestamp DESC, id DESC LIMIT ?",
            (device_id, limit),
        )
