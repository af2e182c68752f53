import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from servicehub.models import AvailabilitySlot

SLOT_COLUMNS = (
    "day_of_week",
    "specific_date",
    "start_time",
    "end_time",
    "max_bookings",
    "is_active",
)


@dataclass
class AvailabilityStore:
    """Persistence for provider availability slots.

    Performs no validation; the availability manager owns every rule applied
    before a write reaches this store.
    """

    db_path: str

    def __post_init__(self) -> None:
        self._lock = Lock()
        path = Path(self.db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = str(path)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS availability_slots (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        provider_id INTEGER NOT NULL,
                        day_of_week INTEGER,
                        specific_date TEXT,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        max_bookings INTEGER NOT NULL DEFAULT 1,
                        is_active INTEGER NOT NULL DEFAULT 1,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS availability_slots_provider_idx ON availability_slots (provider_id)"
                )
                conn.commit()

    def _row_to_slot(self, row: sqlite3.Row) -> AvailabilitySlot:
        return AvailabilitySlot(
            id=row["id"],
            provider_id=row["provider_id"],
            day_of_week=row["day_of_week"],
            specific_date=row["specific_date"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            max_bookings=row["max_bookings"],
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def list_for_provider(self, provider_id: int) -> List[AvailabilitySlot]:
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM availability_slots WHERE provider_id = ? ORDER BY id ASC",
                    (provider_id,),
                ).fetchall()
        return [self._row_to_slot(row) for row in rows]

    def list_active_for_provider(self, provider_id: int) -> List[AvailabilitySlot]:
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT * FROM availability_slots
                    WHERE provider_id = ? AND is_active = 1
                    ORDER BY id ASC
                    """,
                    (provider_id,),
                ).fetchall()
        return [self._row_to_slot(row) for row in rows]

    def get(self, slot_id: int, provider_id: int) -> Optional[AvailabilitySlot]:
        with self._lock:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT * FROM availability_slots WHERE id = ? AND provider_id = ?",
                    (slot_id, provider_id),
                ).fetchone()
        return self._row_to_slot(row) if row else None

    def insert(self, provider_id: int, values: Dict[str, Any], now: datetime) -> AvailabilitySlot:
        now_iso = now.isoformat()
        with self._lock:
            with self._connect() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO availability_slots (
                        provider_id, day_of_week, specific_date, start_time, end_time,
                        max_bookings, is_active, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        provider_id,
                        values.get("day_of_week"),
                        values.get("specific_date"),
                        values["start_time"],
                        values["end_time"],
                        values.get("max_bookings", 1),
                        int(values.get("is_active", True)),
                        now_iso,
                        now_iso,
                    ),
                )
                conn.commit()
                row = conn.execute("SELECT * FROM availability_slots WHERE id = ?", (cursor.lastrowid,)).fetchone()
        return self._row_to_slot(row)

    def update_fields(
        self,
        slot_id: int,
        provider_id: int,
        fields: Dict[str, Any],
        now: datetime,
    ) -> Optional[AvailabilitySlot]:
        assignments = []
        params: List[Any] = []
        for column in SLOT_COLUMNS:
            if column in fields:
                value = fields[column]
                assignments.append(f"{column} = ?")
                params.append(int(value) if column == "is_active" else value)
        assignments.append("updated_at = ?")
        params.append(now.isoformat())
        params.extend([slot_id, provider_id])

        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    f"UPDATE availability_slots SET {', '.join(assignments)} WHERE id = ? AND provider_id = ?",
                    tuple(params),
                )
                conn.commit()
                row = conn.execute(
                    "SELECT * FROM availability_slots WHERE id = ? AND provider_id = ?",
                    (slot_id, provider_id),
                ).fetchone()
        return self._row_to_slot(row) if row else None

    def delete(self, slot_id: int, provider_id: int) -> Optional[AvailabilitySlot]:
        with self._lock:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT * FROM availability_slots WHERE id = ? AND provider_id = ?",
                    (slot_id, provider_id),
                ).fetchone()
                if not row:
                    return None
                conn.execute(
                    "DELETE FROM availability_slots WHERE id = ? AND provider_id = ?",
                    (slot_id, provider_id),
                )
                conn.commit()
        return self._row_to_slot(row)
