import os
from pathlib import Path


def _parse_csv_env(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _positive_int_env(name: str, default: int) -> int:
    try:
        value = int(os.getenv(name, str(default)))
    except ValueError:
        return default
    return value if value > 0 else default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes"}


default_db = str(Path(__file__).resolve().parents[1] / "data" / "servicehub.sqlite3")
DB_PATH = os.getenv("SERVICEHUB_DB_PATH", default_db)

MATCH_MAX_RESULTS = _positive_int_env("MATCH_MAX_RESULTS", 5)
DEFAULT_DURATION_MINUTES = _positive_int_env("DEFAULT_DURATION_MINUTES", 60)
MATCH_TELEMETRY_ENABLED = _bool_env("MATCH_TELEMETRY_ENABLED", True)
SEED_DEMO_DATA = _bool_env("SEED_DEMO_DATA", True)

CORS_ORIGINS = _parse_csv_env("CORS_ORIGINS", "*")
TRUSTED_HOSTS = _parse_csv_env("TRUSTED_HOSTS", "*")
