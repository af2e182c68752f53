import json
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from servicehub.models import Category, ServiceProvider

DEMO_CATEGORIES = {
    1: "Plumbing",
    2: "Electrical",
    3: "Cleaning",
    4: "Gardening",
    5: "Painting",
}

DEMO_PROVIDERS: List[Dict[str, Any]] = [
    {
        "id": 1,
        "business_name": "Rosario Plomeria Express",
        "city": "Rosario",
        "latitude": -32.9468,
        "longitude": -60.6393,
        "category_ids": [1],
        "is_verified": True,
        "credits": 25,
        "average_rating": 4.8,
        "completed_jobs": 64,
        "response_time_hours": 1,
        "is_available": True,
        "phone": "+54 341 555 0101",
    },
    {
        "id": 2,
        "business_name": "Electro Litoral",
        "city": "Rosario",
        "latitude": -32.9587,
        "longitude": -60.6930,
        "category_ids": [2],
        "is_verified": True,
        "credits": 12,
        "average_rating": 4.5,
        "completed_jobs": 22,
        "response_time_hours": 3,
        "is_available": False,
        "phone": "+54 341 555 0102",
    },
    {
        "id": 3,
        "business_name": "Funes Hogar Integral",
        "city": "Funes",
        "latitude": -32.9167,
        "longitude": -60.8094,
        "category_ids": [1, 3, 5],
        "is_verified": True,
        "credits": 6,
        "average_rating": 4.1,
        "completed_jobs": 9,
        "response_time_hours": 10,
        "is_available": True,
        "phone": "+54 341 555 0103",
    },
    {
        "id": 4,
        "business_name": "Verde Jardines",
        "city": "Rosario",
        "latitude": None,
        "longitude": None,
        "category_ids": [4],
        "is_verified": True,
        "credits": 2,
        "average_rating": None,
        "completed_jobs": None,
        "response_time_hours": None,
        "is_available": None,
        "phone": None,
    },
    {
        "id": 5,
        "business_name": "Santa Fe Servicios",
        "city": "Santa Fe",
        "latitude": -31.6333,
        "longitude": -60.7000,
        "category_ids": [1, 2],
        "is_verified": True,
        "credits": 0,
        "average_rating": 4.9,
        "completed_jobs": 120,
        "response_time_hours": 2,
        "is_available": True,
        "phone": "+54 342 555 0105",
    },
]


def _connect(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def _prepare_path(db_path: str) -> str:
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return str(path)


@dataclass
class ProviderDirectory:
    """Read model of provider profiles used by matching and request assignment."""

    db_path: str
    seed_demo_data: bool = False

    def __post_init__(self) -> None:
        self._lock = Lock()
        self.db_path = _prepare_path(self.db_path)
        self._init_db()
        if self.seed_demo_data:
            self._seed_if_needed()

    def _init_db(self) -> None:
        with self._lock:
            with _connect(self.db_path) as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS providers (
                        id INTEGER PRIMARY KEY,
                        business_name TEXT NOT NULL,
                        city TEXT NOT NULL,
                        latitude REAL,
                        longitude REAL,
                        category_ids_json TEXT NOT NULL DEFAULT '[]',
                        is_verified INTEGER NOT NULL DEFAULT 0,
                        credits INTEGER NOT NULL DEFAULT 0,
                        average_rating REAL,
                        completed_jobs INTEGER,
                        response_time_hours REAL,
                        is_available INTEGER,
                        phone TEXT
                    )
                    """
                )
                conn.commit()

    def _seed_if_needed(self) -> None:
        with self._lock:
            with _connect(self.db_path) as conn:
                count = conn.execute("SELECT COUNT(*) AS total FROM providers").fetchone()["total"]
        if count:
            return
        for raw in DEMO_PROVIDERS:
            self.upsert_provider(ServiceProvider(**raw))

    def _row_to_provider(self, row: sqlite3.Row) -> ServiceProvider:
        try:
            category_ids = [int(value) for value in json.loads(row["category_ids_json"] or "[]")]
        except (TypeError, ValueError):
            category_ids = []
        is_available = row["is_available"]
        return ServiceProvider(
            id=row["id"],
            business_name=row["business_name"],
            city=row["city"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            category_ids=category_ids,
            is_verified=bool(row["is_verified"]),
            credits=int(row["credits"]),
            average_rating=row["average_rating"],
            completed_jobs=row["completed_jobs"],
            response_time_hours=row["response_time_hours"],
            is_available=None if is_available is None else bool(is_available),
            phone=row["phone"],
        )

    def upsert_provider(self, provider: ServiceProvider) -> ServiceProvider:
        with self._lock:
            with _connect(self.db_path) as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO providers (
                        id, business_name, city, latitude, longitude, category_ids_json, is_verified,
                        credits, average_rating, completed_jobs, response_time_hours, is_available, phone
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        provider.id,
                        provider.business_name,
                        provider.city,
                        provider.latitude,
                        provider.longitude,
                        json.dumps(provider.category_ids),
                        int(provider.is_verified),
                        provider.credits,
                        provider.average_rating,
                        provider.completed_jobs,
                        provider.response_time_hours,
                        None if provider.is_available is None else int(provider.is_available),
                        provider.phone,
                    ),
                )
                conn.commit()
        return provider

    def get_provider(self, provider_id: int) -> Optional[ServiceProvider]:
        with self._lock:
            with _connect(self.db_path) as conn:
                row = conn.execute("SELECT * FROM providers WHERE id = ?", (provider_id,)).fetchone()
        return self._row_to_provider(row) if row else None

    def count_providers(self, min_credits: int = 1) -> Dict[str, int]:
        with self._lock:
            with _connect(self.db_path) as conn:
                row = conn.execute(
                    """
                    SELECT
                        COUNT(*) AS total,
                        COALESCE(SUM(CASE WHEN is_verified = 1 THEN 1 ELSE 0 END), 0) AS verified,
                        COALESCE(SUM(CASE WHEN is_verified = 1 AND credits >= ? THEN 1 ELSE 0 END), 0) AS active
                    FROM providers
                    """,
                    (min_credits,),
                ).fetchone()
        return {"total": int(row["total"]), "verified": int(row["verified"]), "active": int(row["active"])}

    def list_eligible_providers(
        self,
        category_id: int,
        min_credits: int = 1,
        verified_only: bool = True,
    ) -> List[ServiceProvider]:
        query = "SELECT * FROM providers WHERE credits >= ?"
        params: List[Any] = [min_credits]
        if verified_only:
            query += " AND is_verified = 1"
        query += " ORDER BY id ASC"
        with self._lock:
            with _connect(self.db_path) as conn:
                rows = conn.execute(query, tuple(params)).fetchall()
        providers = [self._row_to_provider(row) for row in rows]
        return [provider for provider in providers if category_id in provider.category_ids]


@dataclass
class CategoryDirectory:
    db_path: str
    seed_demo_data: bool = False

    def __post_init__(self) -> None:
        self._lock = Lock()
        self.db_path = _prepare_path(self.db_path)
        with self._lock:
            with _connect(self.db_path) as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS categories (
                        id INTEGER PRIMARY KEY,
                        name TEXT NOT NULL
                    )
                    """
                )
                if self.seed_demo_data:
                    for category_id, name in DEMO_CATEGORIES.items():
                        conn.execute(
                            "INSERT OR IGNORE INTO categories (id, name) VALUES (?, ?)",
                            (category_id, name),
                        )
                conn.commit()

    def upsert_category(self, category: Category) -> Category:
        with self._lock:
            with _connect(self.db_path) as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO categories (id, name) VALUES (?, ?)",
                    (category.id, category.name),
                )
                conn.commit()
        return category

    def get_name(self, category_id: int) -> Optional[str]:
        with self._lock:
            with _connect(self.db_path) as conn:
                row = conn.execute("SELECT name FROM categories WHERE id = ?", (category_id,)).fetchone()
        return str(row["name"]) if row else None

    def list_categories(self) -> List[Category]:
        with self._lock:
            with _connect(self.db_path) as conn:
                rows = conn.execute("SELECT id, name FROM categories ORDER BY id ASC").fetchall()
        return [Category(id=row["id"], name=row["name"]) for row in rows]
