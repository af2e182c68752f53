import itertools
import os
import sys
import threading
from datetime import datetime, timezone

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from servicehub.models import AvailabilitySlotCreate, ServiceRequestCreate
from servicehub.services.errors import (
    CapacityExceeded,
    InvalidArgument,
    InvalidStatusTransition,
    NoAvailability,
    NotAuthorized,
    RequestNotFound,
    ValidationFailed,
)
from servicehub.services.request_lifecycle import ALLOWED_TRANSITIONS, REQUEST_STATUSES, assert_transition

LATER = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)

ALLOWED_PAIRS = {
    ("pending", "quoted"),
    ("pending", "cancelled"),
    ("quoted", "accepted"),
    ("quoted", "cancelled"),
    ("accepted", "in_progress"),
    ("accepted", "cancelled"),
    ("in_progress", "completed"),
    ("in_progress", "cancelled"),
}


def _create(engine, provider_id=1, preferred_date=None, customer_id="customer-1", **extra):
    return engine.lifecycle.create_request(
        ServiceRequestCreate(
            customer_id=customer_id,
            category_id=1,
            title="Fix kitchen sink",
            city="Rosario",
            provider_id=provider_id,
            preferred_date=preferred_date,
            **extra,
        )
    )


def _quoted(engine, **kwargs):
    request = _create(engine, **kwargs)
    return engine.lifecycle.quote(request.id, request.provider_id, 150.0)


@pytest.mark.parametrize("current,attempted", list(itertools.product(REQUEST_STATUSES, repeat=2)))
def test_transition_table(current, attempted):
    if (current, attempted) in ALLOWED_PAIRS:
        assert_transition(current, attempted)
    else:
        with pytest.raises(InvalidStatusTransition) as exc_info:
            assert_transition(current, attempted)
        assert exc_info.value.current == current
        assert exc_info.value.attempted == attempted


def test_terminal_statuses_have_no_exits():
    assert ALLOWED_TRANSITIONS["completed"] == set()
    assert ALLOWED_TRANSITIONS["cancelled"] == set()


def test_create_request_defaults(engine):
    request = _create(engine, provider_id=None)
    assert request.status == "pending"
    assert request.provider_id is None
    assert request.duration_minutes == 60
    assert request.created_at == request.updated_at
    assert engine.lifecycle.get_request(request.id) == request


@pytest.mark.parametrize(
    "overrides",
    [
        {"title": "ab"},
        {"city": "   "},
        {"customer_id": " "},
        {"category_id": 0},
        {"duration_minutes": 0},
        {"estimated_budget": -10.0},
        {"estimated_budget": float("inf")},
        {"provider_id": 999},
    ],
)
def test_create_request_validation(engine, overrides):
    values = {
        "customer_id": "customer-1",
        "category_id": 1,
        "title": "Fix kitchen sink",
        "city": "Rosario",
    }
    values.update(overrides)
    with pytest.raises(InvalidArgument):
        engine.lifecycle.create_request(ServiceRequestCreate(**values))


def test_full_lifecycle_stamps_each_step(engine):
    request = _create(engine)
    quoted = engine.lifecycle.quote(request.id, 1, 150.0, now=LATER)
    assert quoted.status == "quoted"
    assert quoted.quoted_price == 150.0
    assert quoted.quoted_at == LATER.isoformat()
    assert quoted.updated_at == LATER.isoformat()

    accepted = engine.lifecycle.accept(request.id, "customer-1")
    assert accepted.status == "accepted"
    assert accepted.accepted_at is not None

    started = engine.lifecycle.start(request.id, 1)
    assert started.status == "in_progress"
    assert started.started_at is not None

    completed = engine.lifecycle.complete(request.id, 1)
    assert completed.status == "completed"
    assert completed.completed_at is not None
    assert completed.quoted_at == LATER.isoformat()

    with pytest.raises(InvalidStatusTransition):
        engine.lifecycle.cancel(request.id, "customer", "customer-1")


def test_accept_on_pending_request_is_rejected(engine):
    request = _create(engine)
    with pytest.raises(InvalidStatusTransition) as exc_info:
        engine.lifecycle.accept(request.id, "customer-1")
    assert exc_info.value.current == "pending"
    assert exc_info.value.attempted == "accepted"
    assert str(exc_info.value) == "Invalid status transition: pending -> accepted"
    assert engine.lifecycle.get_request(request.id).status == "pending"


def test_start_before_accept_is_rejected(engine):
    request = _quoted(engine)
    with pytest.raises(InvalidStatusTransition):
        engine.lifecycle.start(request.id, 1)


@pytest.mark.parametrize("price", [-1.0, float("nan"), float("inf"), 1_000_001.0, True])
def test_quote_rejects_invalid_prices(engine, price):
    request = _create(engine)
    with pytest.raises(InvalidArgument):
        engine.lifecycle.quote(request.id, 1, price)
    assert engine.lifecycle.get_request(request.id).status == "pending"


def test_quote_accepts_boundary_prices(engine):
    assert engine.lifecycle.quote(_create(engine).id, 1, 0).quoted_price == 0
    assert engine.lifecycle.quote(_create(engine).id, 1, 1_000_000).quoted_price == 1_000_000


def test_only_assigned_provider_may_act(engine):
    unassigned = _create(engine, provider_id=None)
    with pytest.raises(NotAuthorized):
        engine.lifecycle.quote(unassigned.id, 1, 100.0)

    request = _create(engine)
    with pytest.raises(NotAuthorized):
        engine.lifecycle.quote(request.id, 2, 100.0)

    engine.lifecycle.quote(request.id, 1, 100.0)
    engine.lifecycle.accept(request.id, "customer-1")
    with pytest.raises(NotAuthorized):
        engine.lifecycle.start(request.id, 2)
    engine.lifecycle.start(request.id, 1)
    with pytest.raises(NotAuthorized):
        engine.lifecycle.complete(request.id, 2)


def test_only_owning_customer_may_accept(engine):
    request = _quoted(engine)
    with pytest.raises(NotAuthorized):
        engine.lifecycle.accept(request.id, "customer-2")
    assert engine.lifecycle.get_request(request.id).status == "quoted"


def test_cancel_rules(engine):
    by_customer = _create(engine)
    cancelled = engine.lifecycle.cancel(by_customer.id, "customer", "customer-1")
    assert cancelled.status == "cancelled"
    assert cancelled.cancelled_at is not None

    by_provider = _quoted(engine)
    engine.lifecycle.accept(by_provider.id, "customer-1")
    assert engine.lifecycle.cancel(by_provider.id, "provider", 1).status == "cancelled"

    other = _create(engine)
    with pytest.raises(NotAuthorized):
        engine.lifecycle.cancel(other.id, "customer", "customer-2")
    with pytest.raises(NotAuthorized):
        engine.lifecycle.cancel(other.id, "provider", 2)
    with pytest.raises(InvalidArgument):
        engine.lifecycle.cancel(other.id, "admin", "root")

    with pytest.raises(InvalidStatusTransition):
        engine.lifecycle.cancel(by_customer.id, "customer", "customer-1")


def test_accept_runs_conflict_checks_for_scheduled_requests(engine):
    engine.manager.create_slot(
        1,
        AvailabilitySlotCreate(day_of_week=1, start_time="09:00", end_time="12:00", max_bookings=1),
    )
    first = _quoted(engine, preferred_date=datetime(2026, 3, 2, 9, 0))
    second = _quoted(engine, preferred_date=datetime(2026, 3, 2, 11, 0))

    assert engine.lifecycle.accept(first.id, "customer-1").status == "accepted"
    with pytest.raises(CapacityExceeded):
        engine.lifecycle.accept(second.id, "customer-1")
    assert engine.lifecycle.get_request(second.id).status == "quoted"

    engine.lifecycle.cancel(first.id, "customer", "customer-1")
    assert engine.lifecycle.accept(second.id, "customer-1").status == "accepted"


def test_accept_without_slots_fails_for_scheduled_requests_only(engine):
    scheduled = _quoted(engine, preferred_date=datetime(2026, 3, 2, 10, 0))
    with pytest.raises(NoAvailability):
        engine.lifecycle.accept(scheduled.id, "customer-1")

    unscheduled = _quoted(engine)
    assert engine.lifecycle.accept(unscheduled.id, "customer-1").status == "accepted"


def test_assign_provider_only_while_pending(engine):
    request = _create(engine, provider_id=None)
    with pytest.raises(NotAuthorized):
        engine.lifecycle.assign_provider(request.id, "customer-2", 1)
    with pytest.raises(InvalidArgument):
        engine.lifecycle.assign_provider(request.id, "customer-1", 999)

    assigned = engine.lifecycle.assign_provider(request.id, "customer-1", 2)
    assert assigned.provider_id == 2
    assert assigned.status == "pending"

    engine.lifecycle.quote(request.id, 2, 80.0)
    with pytest.raises(ValidationFailed):
        engine.lifecycle.assign_provider(request.id, "customer-1", 1)


def test_unknown_request_is_not_found(engine):
    with pytest.raises(RequestNotFound):
        engine.lifecycle.get_request(4242)
    with pytest.raises(RequestNotFound):
        engine.lifecycle.quote(4242, 1, 10.0)
    with pytest.raises(InvalidArgument):
        engine.lifecycle.get_request(0)


def test_status_write_is_compare_and_set(engine):
    request = _create(engine)
    assert engine.request_store.transition(request.id, "quoted", {"status": "accepted"}) is None
    assert engine.lifecycle.get_request(request.id).status == "pending"
    moved = engine.request_store.transition(request.id, "pending", {"status": "cancelled"})
    assert moved.status == "cancelled"


def test_listing_by_customer_and_provider(engine):
    first = _create(engine, customer_id="customer-9")
    second = _create(engine, customer_id="customer-9", provider_id=2)
    _create(engine, customer_id="customer-10")

    assert [item.id for item in engine.lifecycle.list_for_customer("customer-9")] == [second.id, first.id]
    assert [item.id for item in engine.lifecycle.list_for_provider(2)] == [second.id]
    with pytest.raises(InvalidArgument):
        engine.lifecycle.list_for_customer("  ")


def test_concurrent_accepts_for_same_provider_are_serialized(engine):
    engine.manager.create_slot(
        1,
        AvailabilitySlotCreate(day_of_week=1, start_time="09:00", end_time="12:00", max_bookings=1),
    )
    first = _quoted(engine, preferred_date=datetime(2026, 3, 2, 9, 0))
    second = _quoted(engine, preferred_date=datetime(2026, 3, 2, 10, 30))

    barrier = threading.Barrier(2)
    outcomes = []
    outcomes_lock = threading.Lock()

    def accept(request_id):
        barrier.wait()
        try:
            engine.lifecycle.accept(request_id, "customer-1")
            result = "ok"
        except CapacityExceeded as exc:
            result = exc.kind
        with outcomes_lock:
            outcomes.append(result)

    threads = [threading.Thread(target=accept, args=(item.id,)) for item in (first, second)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert sorted(outcomes) == ["CapacityExceeded", "ok"]
    statuses = sorted(engine.lifecycle.get_request(item.id).status for item in (first, second))
    assert statuses == ["accepted", "quoted"]
