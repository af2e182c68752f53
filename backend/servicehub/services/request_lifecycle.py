import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from servicehub.models import ServiceRequest, ServiceRequestCreate
from servicehub.services.booking_conflicts import BookingConflictChecker
from servicehub.services.directory_store import ProviderDirectory
from servicehub.services.errors import (
    InvalidArgument,
    InvalidStatusTransition,
    NotAuthorized,
    RequestNotFound,
    ValidationFailed,
)
from servicehub.services.provider_locks import ProviderLockRegistry
from servicehub.services.request_store import RequestStore
from servicehub.services.time_windows import require_positive_id, utc_now

logger = logging.getLogger(__name__)

REQUEST_STATUSES = ("pending", "quoted", "accepted", "in_progress", "completed", "cancelled")

ALLOWED_TRANSITIONS: Dict[str, set[str]] = {
    "pending": {"quoted", "cancelled"},
    "quoted": {"accepted", "cancelled"},
    "accepted": {"in_progress", "cancelled"},
    "in_progress": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}

TERMINAL_STATUSES = {"completed", "cancelled"}

MAX_QUOTE_PRICE = 1_000_000

ACTOR_ROLES = {"customer", "provider"}


def assert_transition(current: str, attempted: str) -> None:
    if attempted not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidStatusTransition(current, attempted)


@dataclass
class ServiceRequestStateMachine:
    request_store: RequestStore
    conflict_checker: BookingConflictChecker
    provider_directory: ProviderDirectory
    locks: ProviderLockRegistry = field(default_factory=ProviderLockRegistry)
    clock: Callable[[], datetime] = utc_now
    default_duration_minutes: int = 60

    def _load(self, request_id: int) -> ServiceRequest:
        require_positive_id(request_id, field="request_id")
        request = self.request_store.get(request_id)
        if not request:
            raise RequestNotFound("Service request not found", field="request_id", value=request_id)
        return request

    def _assert_assigned_provider(self, request: ServiceRequest, provider_id: int, action: str) -> None:
        if request.provider_id is None or request.provider_id != provider_id:
            raise NotAuthorized(
                f"Only the assigned provider can {action} this request",
                field="provider_id",
                value=provider_id,
            )

    def _assert_customer(self, request: ServiceRequest, customer_id: str, action: str) -> None:
        if str(customer_id) != request.customer_id:
            raise NotAuthorized(
                f"Only the customer can {action} this request",
                field="customer_id",
                value=customer_id,
            )

    def _transition(
        self,
        request: ServiceRequest,
        next_status: str,
        stamp_field: str,
        now: Optional[datetime],
        extra: Optional[Dict[str, Any]] = None,
    ) -> ServiceRequest:
        assert_transition(request.status, next_status)
        now_iso = (now or self.clock()).isoformat()
        fields: Dict[str, Any] = {
            **(extra or {}),
            "status": next_status,
            stamp_field: now_iso,
            "updated_at": now_iso,
        }
        updated = self.request_store.transition(request.id, request.status, fields)
        if updated is None:
            # Another writer moved the row first; report against what it holds now.
            fresh = self._load(request.id)
            raise InvalidStatusTransition(fresh.status, next_status)
        logger.info(
            "service request transition request_id=%s %s -> %s",
            request.id,
            request.status,
            next_status,
        )
        return updated

    def get_request(self, request_id: int) -> ServiceRequest:
        return self._load(request_id)

    def list_for_customer(self, customer_id: str) -> List[ServiceRequest]:
        if not str(customer_id or "").strip():
            raise InvalidArgument("customer_id is required", field="customer_id", value=customer_id)
        return self.request_store.list_for_customer(str(customer_id).strip())

    def list_for_provider(self, provider_id: int) -> List[ServiceRequest]:
        require_positive_id(provider_id, field="provider_id")
        return self.request_store.list_for_provider(provider_id)

    def create_request(self, data: ServiceRequestCreate, now: Optional[datetime] = None) -> ServiceRequest:
        customer_id = data.customer_id.strip()
        if not customer_id:
            raise InvalidArgument("customer_id is required", field="customer_id", value=data.customer_id)
        require_positive_id(data.category_id, field="category_id")
        title = data.title.strip()
        if len(title) < 3:
            raise InvalidArgument("title must be at least 3 characters", field="title", value=data.title)
        city = data.city.strip()
        if not city:
            raise InvalidArgument("city is required", field="city", value=data.city)
        duration = data.duration_minutes if data.duration_minutes is not None else self.default_duration_minutes
        if duration <= 0:
            raise InvalidArgument("duration_minutes must be positive", field="duration_minutes", value=duration)
        if data.estimated_budget is not None and (
            not math.isfinite(data.estimated_budget) or data.estimated_budget < 0
        ):
            raise InvalidArgument(
                "estimated_budget must be a non-negative number",
                field="estimated_budget",
                value=data.estimated_budget,
            )
        if data.provider_id is not None:
            self._require_known_provider(data.provider_id)

        now_iso = (now or self.clock()).isoformat()
        created = self.request_store.insert(
            {
                "customer_id": customer_id,
                "provider_id": data.provider_id,
                "category_id": data.category_id,
                "title": title,
                "description": data.description.strip(),
                "city": city,
                "latitude": data.latitude,
                "longitude": data.longitude,
                "estimated_budget": data.estimated_budget,
                "is_urgent": data.is_urgent,
                "preferred_date": data.preferred_date,
                "duration_minutes": duration,
                "status": "pending",
                "created_at": now_iso,
                "updated_at": now_iso,
            }
        )
        logger.info("service request created request_id=%s category_id=%s", created.id, created.category_id)
        return created

    def _require_known_provider(self, provider_id: int) -> None:
        require_positive_id(provider_id, field="provider_id")
        if self.provider_directory.get_provider(provider_id) is None:
            raise InvalidArgument("Unknown provider", field="provider_id", value=provider_id)

    def assign_provider(
        self,
        request_id: int,
        customer_id: str,
        provider_id: int,
        now: Optional[datetime] = None,
    ) -> ServiceRequest:
        request = self._load(request_id)
        self._assert_customer(request, customer_id, "assign a provider to")
        if request.status != "pending":
            raise ValidationFailed(
                "A provider can only be assigned while the request is pending",
                field="status",
                value=request.status,
            )
        self._require_known_provider(provider_id)
        now_iso = (now or self.clock()).isoformat()
        updated = self.request_store.transition(
            request.id,
            "pending",
            {"provider_id": provider_id, "updated_at": now_iso},
        )
        if updated is None:
            fresh = self._load(request.id)
            raise ValidationFailed(
                "A provider can only be assigned while the request is pending",
                field="status",
                value=fresh.status,
            )
        logger.info("service request assigned request_id=%s provider_id=%s", request.id, provider_id)
        return updated

    def quote(
        self,
        request_id: int,
        provider_id: int,
        price: float,
        now: Optional[datetime] = None,
    ) -> ServiceRequest:
        if (
            isinstance(price, bool)
            or not isinstance(price, (int, float))
            or not math.isfinite(price)
            or not 0 <= price <= MAX_QUOTE_PRICE
        ):
            raise InvalidArgument("Invalid price", field="price", value=price)
        request = self._load(request_id)
        self._assert_assigned_provider(request, provider_id, "quote")
        return self._transition(request, "quoted", "quoted_at", now, extra={"quoted_price": float(price)})

    def accept(self, request_id: int, customer_id: str, now: Optional[datetime] = None) -> ServiceRequest:
        request = self._load(request_id)
        self._assert_customer(request, customer_id, "accept")
        assert_transition(request.status, "accepted")

        if request.preferred_date is None or request.provider_id is None:
            return self._transition(request, "accepted", "accepted_at", now)

        with self.locks.hold(request.provider_id):
            self.conflict_checker.check(
                request.provider_id,
                request.preferred_date,
                request.duration_minutes or self.default_duration_minutes,
                exclude_request_id=request.id,
            )
            return self._transition(request, "accepted", "accepted_at", now)

    def start(self, request_id: int, provider_id: int, now: Optional[datetime] = None) -> ServiceRequest:
        request = self._load(request_id)
        self._assert_assigned_provider(request, provider_id, "start")
        return self._transition(request, "in_progress", "started_at", now)

    def complete(self, request_id: int, provider_id: int, now: Optional[datetime] = None) -> ServiceRequest:
        request = self._load(request_id)
        self._assert_assigned_provider(request, provider_id, "complete")
        return self._transition(request, "completed", "completed_at", now)

    def cancel(
        self,
        request_id: int,
        actor_role: str,
        actor_id: Any,
        now: Optional[datetime] = None,
    ) -> ServiceRequest:
        role = (actor_role or "").strip().lower()
        if role not in ACTOR_ROLES:
            raise InvalidArgument("actor_role must be customer or provider", field="actor_role", value=actor_role)
        request = self._load(request_id)
        if role == "customer":
            self._assert_customer(request, actor_id, "cancel")
        elif request.provider_id is None or str(actor_id) != str(request.provider_id):
            raise NotAuthorized(
                "Only the assigned provider can cancel this request",
                field="actor_id",
                value=actor_id,
            )
        return self._transition(request, "cancelled", "cancelled_at", now)
