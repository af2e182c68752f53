import sqlite3
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional

from servicehub.models import ServiceRequest

REQUEST_COLUMNS = (
    "customer_id",
    "provider_id",
    "category_id",
    "title",
    "description",
    "city",
    "latitude",
    "longitude",
    "estimated_budget",
    "is_urgent",
    "preferred_date",
    "duration_minutes",
    "quoted_price",
    "status",
    "created_at",
    "updated_at",
    "quoted_at",
    "accepted_at",
    "started_at",
    "completed_at",
    "cancelled_at",
)


def _to_db(column: str, value: Any) -> Any:
    if value is None:
        return None
    if column == "is_urgent":
        return int(bool(value))
    if column == "preferred_date" and isinstance(value, datetime):
        # Wall-clock time of the appointment; calendar-date queries rely on the ISO prefix.
        return value.replace(tzinfo=None).isoformat()
    return value


@dataclass
class RequestStore:
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
                    CREATE TABLE IF NOT EXISTS service_requests (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        customer_id TEXT NOT NULL,
                        provider_id INTEGER,
                        category_id INTEGER NOT NULL,
                        title TEXT NOT NULL,
                        description TEXT NOT NULL DEFAULT '',
                        city TEXT NOT NULL,
                        latitude REAL,
                        longitude REAL,
                        estimated_budget REAL,
                        is_urgent INTEGER NOT NULL DEFAULT 0,
                        preferred_date TEXT,
                        duration_minutes INTEGER NOT NULL DEFAULT 60,
                        quoted_price REAL,
                        status TEXT NOT NULL DEFAULT 'pending',
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        quoted_at TEXT,
                        accepted_at TEXT,
                        started_at TEXT,
                        completed_at TEXT,
                        cancelled_at TEXT
                    )
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS service_requests_provider_idx ON service_requests (provider_id, status)"
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS service_requests_customer_idx ON service_requests (customer_id)"
                )
                conn.commit()

    def _row_to_request(self, row: sqlite3.Row) -> ServiceRequest:
        preferred_raw = row["preferred_date"]
        return ServiceRequest(
            id=row["id"],
            customer_id=row["customer_id"],
            provider_id=row["provider_id"],
            category_id=row["category_id"],
            title=row["title"],
            description=row["description"] or "",
            city=row["city"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            estimated_budget=row["estimated_budget"],
            is_urgent=bool(row["is_urgent"]),
            preferred_date=datetime.fromisoformat(preferred_raw) if preferred_raw else None,
            duration_minutes=row["duration_minutes"],
            quoted_price=row["quoted_price"],
            status=row["status"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            quoted_at=row["quoted_at"],
            accepted_at=row["accepted_at"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
            cancelled_at=row["cancelled_at"],
        )

    def insert(self, values: Dict[str, Any]) -> ServiceRequest:
        columns = [column for column in REQUEST_COLUMNS if column in values]
        placeholders = ", ".join("?" for _ in columns)
        params = tuple(_to_db(column, values[column]) for column in columns)
        with self._lock:
            with self._connect() as conn:
                cursor = conn.execute(
                    f"INSERT INTO service_requests ({', '.join(columns)}) VALUES ({placeholders})",
                    params,
                )
                conn.commit()
                row = conn.execute("SELECT * FROM service_requests WHERE id = ?", (cursor.lastrowid,)).fetchone()
        return self._row_to_request(row)

    def get(self, request_id: int) -> Optional[ServiceRequest]:
        with self._lock:
            with self._connect() as conn:
                row = conn.execute("SELECT * FROM service_requests WHERE id = ?", (request_id,)).fetchone()
        return self._row_to_request(row) if row else None

    def list_for_customer(self, customer_id: str) -> List[ServiceRequest]:
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM service_requests WHERE customer_id = ? ORDER BY created_at DESC, id DESC",
                    (customer_id,),
                ).fetchall()
        return [self._row_to_request(row) for row in rows]

    def list_for_provider(self, provider_id: int) -> List[ServiceRequest]:
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM service_requests WHERE provider_id = ? ORDER BY created_at DESC, id DESC",
                    (provider_id,),
                ).fetchall()
        return [self._row_to_request(row) for row in rows]

    def list_committed_for_provider_on_date(
        self,
        provider_id: int,
        day: date,
        statuses: Iterable[str] = ("accepted",),
        exclude_request_id: Optional[int] = None,
    ) -> List[ServiceRequest]:
        status_list = list(statuses)
        placeholders = ", ".join("?" for _ in status_list)
        query = f"""
            SELECT * FROM service_requests
            WHERE provider_id = ?
              AND status IN ({placeholders})
              AND preferred_date IS NOT NULL
              AND substr(preferred_date, 1, 10) = ?
        """
        params: List[Any] = [provider_id, *status_list, day.isoformat()]
        if exclude_request_id is not None:
            query += " AND id != ?"
            params.append(exclude_request_id)
        query += " ORDER BY preferred_date ASC, id ASC"
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(query, tuple(params)).fetchall()
        return [self._row_to_request(row) for row in rows]

    def update_fields(self, request_id: int, fields: Dict[str, Any]) -> Optional[ServiceRequest]:
        return self._write(request_id, fields, expected_status=None)

    def transition(
        self,
        request_id: int,
        expected_status: str,
        fields: Dict[str, Any],
    ) -> Optional[ServiceRequest]:
        """Compare-and-set write: applies ``fields`` only while the row still has ``expected_status``.

        Returns None when the row is missing or its status moved on.
        """
        return self._write(request_id, fields, expected_status=expected_status)

    def _write(
        self,
        request_id: int,
        fields: Dict[str, Any],
        expected_status: Optional[str],
    ) -> Optional[ServiceRequest]:
        columns = [column for column in REQUEST_COLUMNS if column in fields]
        if not columns:
            return self.get(request_id)
        assignments = ", ".join(f"{column} = ?" for column in columns)
        params: List[Any] = [_to_db(column, fields[column]) for column in columns]
        query = f"UPDATE service_requests SET {assignments} WHERE id = ?"
        params.append(request_id)
        if expected_status is not None:
            query += " AND status = ?"
            params.append(expected_status)

        with self._lock:
            with self._connect() as conn:
                cursor = conn.execute(query, tuple(params))
                conn.commit()
                if cursor.rowcount == 0:
                    return None
                row = conn.execute("SELECT * FROM service_requests WHERE id = ?", (request_id,)).fetchone()
        return self._row_to_request(row) if row else None
