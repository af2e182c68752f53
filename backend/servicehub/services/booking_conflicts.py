import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from servicehub.models import AvailabilitySlot, ServiceRequest
from servicehub.services.availability_store import AvailabilityStore
from servicehub.services.errors import (
    CapacityExceeded,
    InvalidArgument,
    NoAvailability,
    OutsideWorkingHours,
    ProviderNotWorkingThatDay,
    SchedulingConflictError,
    TimeConflict,
)
from servicehub.services.request_store import RequestStore
from servicehub.services.time_windows import (
    day_of_week,
    minutes_of_day,
    parse_hhmm,
    ranges_overlap,
    window_within,
)

logger = logging.getLogger(__name__)

# Requests that occupy a provider's calendar for capacity and overlap checks.
COMMITTED_STATUSES = ("accepted", "in_progress")


def request_window(request: ServiceRequest, default_duration: int) -> Optional[Tuple[int, int]]:
    if request.preferred_date is None:
        return None
    start = minutes_of_day(request.preferred_date)
    return start, start + (request.duration_minutes or default_duration)


@dataclass
class BookingConflictChecker:
    """Validates a candidate appointment against slots, capacity and committed requests.

    Callers that go on to write must hold the provider lock across ``check``
    and the write.
    """

    availability_store: AvailabilityStore
    request_store: RequestStore
    default_duration_minutes: int = 60

    def _select_day_slots(self, slots: List[AvailabilitySlot], desired_start: datetime) -> List[AvailabilitySlot]:
        day = desired_start.date()
        one_off = [slot for slot in slots if not slot.is_recurring and slot.specific_date == day.isoformat()]
        if one_off:
            return one_off
        weekday = day_of_week(day)
        return [slot for slot in slots if slot.is_recurring and slot.day_of_week == weekday]

    def check(
        self,
        provider_id: int,
        desired_start: datetime,
        duration_minutes: int,
        exclude_request_id: Optional[int] = None,
    ) -> AvailabilitySlot:
        """Return the slot the appointment falls in, or raise the first rule it breaks."""
        if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes <= 0:
            raise InvalidArgument(
                "duration_minutes must be a positive integer",
                field="duration_minutes",
                value=duration_minutes,
            )
        try:
            return self._check(provider_id, desired_start, duration_minutes, exclude_request_id)
        except SchedulingConflictError as exc:
            logger.warning(
                "booking rejected provider_id=%s start=%s duration=%s kind=%s",
                provider_id,
                desired_start.isoformat(),
                duration_minutes,
                exc.kind,
            )
            raise

    def _check(
        self,
        provider_id: int,
        desired_start: datetime,
        duration_minutes: int,
        exclude_request_id: Optional[int],
    ) -> AvailabilitySlot:
        slots = self.availability_store.list_active_for_provider(provider_id)
        if not slots:
            raise NoAvailability("Provider has no active availability", field="provider_id", value=provider_id)

        day_slots = self._select_day_slots(slots, desired_start)
        if not day_slots:
            raise ProviderNotWorkingThatDay(
                "Provider does not work on the requested day",
                field="preferred_date",
                value=desired_start.date().isoformat(),
            )

        start = minutes_of_day(desired_start)
        end = start + duration_minutes
        slot = next(
            (
                candidate
                for candidate in day_slots
                if window_within(start, end, parse_hhmm(candidate.start_time), parse_hhmm(candidate.end_time))
            ),
            None,
        )
        if slot is None:
            raise OutsideWorkingHours(
                "Requested time is outside the provider's working hours",
                field="preferred_date",
                value=desired_start.isoformat(),
            )

        committed = self.request_store.list_committed_for_provider_on_date(
            provider_id,
            desired_start.date(),
            statuses=COMMITTED_STATUSES,
            exclude_request_id=exclude_request_id,
        )
        if len(committed) >= slot.max_bookings:
            raise CapacityExceeded(
                f"Provider already has {len(committed)} booking(s) that day (max {slot.max_bookings})",
                field="preferred_date",
                value=desired_start.date().isoformat(),
            )

        for other in committed:
            window = request_window(other, self.default_duration_minutes)
            if window and ranges_overlap(start, end, window[0], window[1]):
                raise TimeConflict(
                    f"Requested time overlaps service request {other.id}",
                    field="preferred_date",
                    value=desired_start.isoformat(),
                )
        return slot
