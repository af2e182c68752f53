import os
import sys
import tempfile
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

# The API tests import the default wiring; keep its database out of the source tree.
os.environ["SERVICEHUB_DB_PATH"] = os.path.join(
    tempfile.mkdtemp(prefix="servicehub-tests-"),
    "servicehub.sqlite3",
)

from servicehub.models import ServiceProvider  # noqa: E402
from servicehub.services.availability import AvailabilityManager  # noqa: E402
from servicehub.services.availability_store import AvailabilityStore  # noqa: E402
from servicehub.services.booking_conflicts import BookingConflictChecker  # noqa: E402
from servicehub.services.directory_store import ProviderDirectory  # noqa: E402
from servicehub.services.provider_locks import ProviderLockRegistry  # noqa: E402
from servicehub.services.request_lifecycle import ServiceRequestStateMachine  # noqa: E402
from servicehub.services.request_store import RequestStore  # noqa: E402

# 2026-03-02 is a Monday (day_of_week 1).
FIXED_NOW = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine(tmp_path):
    db_path = str(tmp_path / "engine.sqlite3")
    directory = ProviderDirectory(db_path=db_path)
    availability_store = AvailabilityStore(db_path=db_path)
    request_store = RequestStore(db_path=db_path)
    locks = ProviderLockRegistry()
    checker = BookingConflictChecker(availability_store=availability_store, request_store=request_store)
    manager = AvailabilityManager(store=availability_store, locks=locks, clock=lambda: FIXED_NOW)
    lifecycle = ServiceRequestStateMachine(
        request_store=request_store,
        conflict_checker=checker,
        provider_directory=directory,
        locks=locks,
        clock=lambda: FIXED_NOW,
    )
    for provider_id in (1, 2):
        directory.upsert_provider(
            ServiceProvider(
                id=provider_id,
                business_name=f"Provider {provider_id}",
                city="Rosario",
                category_ids=[1],
                is_verified=True,
                credits=10,
            )
        )
    return SimpleNamespace(
        directory=directory,
        availability_store=availability_store,
        request_store=request_store,
        checker=checker,
        manager=manager,
        lifecycle=lifecycle,
    )
