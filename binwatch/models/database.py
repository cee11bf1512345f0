from __future__ import annotations

import sqlite3
import threading
from contextlib import suppress
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from binwatch.exceptions import StorageError
from binwatch.models.schemas import BinRecord


def _row_to_record(row: sqlite3.Row) -> BinRecord:
    return BinRecord(
        bin_type=row["bin_type"],
        fill_level=row["fill_level"],
        status=row["status"],
        distance_cm=row["distance_cm"],
        bin_height_cm=row["bin_height_cm"],
        last_updated=datetime.fromisoformat(row["last_updated"]),
    )


class DatabaseManager:
    """Current bin state, one row per bin type."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row

    def initialize(self) -> None:
        with self._lock:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS bins (
                    bin_type TEXT PRIMARY KEY,
                    fill_level REAL NOT NULL,
                    status TEXT NOT NULL,
                    distance_cm REAL NOT NULL,
                    bin_height_cm REAL NOT NULL,
                    last_updated TEXT NOT NULL
                );
                """
            )
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _execute(self, query: str, args: tuple[Any, ...] = (), *, commit: bool = False) -> list[sqlite3.Row]:
        with self._lock:
            try:
                rows = self._conn.execute(query, args).fetchall()
                if commit:
                    self._conn.commit()
            except sqlite3.Error as exc:
                if commit:
                    with suppress(sqlite3.Error):
                        self._conn.rollback()
                raise StorageError(f"Bin store query failed: {exc}") from exc
        return rows

    def upsert_bin(self, record: BinRecord) -> BinRecord:
        rows = self._execute(
            """
            INSERT INTO bins (
                bin_type, fill_level, status, distance_cm, bin_height_cm, last_updated
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(bin_type) DO UPDATE SET
                fill_level = excluded.fill_level,
                status = excluded.status,
                distance_cm = excluded.distance_cm,
                bin_height_cm = excluded.bin_height_cm,
                last_updated = excluded.last_updated
            RETURNING *
            """,
            (
                record.bin_type,
                record.fill_level,
                record.status,
                record.distance_cm,
                record.bin_height_cm,
                record.last_updated.astimezone(UTC).isoformat(),
            ),
            commit=True,
        )
        if not rows:
            raise StorageError(f"Upsert for {record.bin_type} returned no row")
        return _row_to_record(rows[0])

    def list_bins(self) -> list[BinRecord]:
        rows = self._execute("SELECT * FROM bins ORDER BY bin_type ASC")
        return [_row_to_record(row) for row in rows]

    def get_bin(self, bin_type: str) -> BinRecord | None:
        rows = self._execute("SELECT * FROM bins WHERE bin_type = ?", (bin_type,))
        return _row_to_record(rows[0]) if rows else None
