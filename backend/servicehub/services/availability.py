import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from servicehub.models import (
    AvailabilityCheckResult,
    AvailabilitySlot,
    AvailabilitySlotCreate,
    AvailabilitySlotUpdate,
)
from servicehub.services.availability_store import AvailabilityStore
from servicehub.services.errors import InvalidArgument, NotFoundOrUnauthorized, OverlapConflict, ValidationFailed
from servicehub.services.provider_locks import ProviderLockRegistry
from servicehub.services.time_windows import (
    day_of_week,
    parse_hhmm,
    parse_iso_date,
    ranges_overlap,
    require_positive_id,
    time_in_range,
    utc_now,
)

logger = logging.getLogger(__name__)


def validate_slot_values(values: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a full set of slot fields and return them normalized.

    Raises InvalidArgument for malformed values and ValidationFailed for
    well-formed but inconsistent ones.
    """
    day = values.get("day_of_week")
    if day is not None and (isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6):
        raise InvalidArgument("Invalid day_of_week; expected 0-6", field="day_of_week", value=day)

    start = parse_hhmm(values.get("start_time"), field="start_time")
    end = parse_hhmm(values.get("end_time"), field="end_time")
    if start >= end:
        raise ValidationFailed(
            "start_time must be before end_time",
            field="start_time",
            value=values.get("start_time"),
        )

    specific_date = values.get("specific_date")
    if specific_date is not None:
        specific_date = parse_iso_date(specific_date, field="specific_date").isoformat()

    if day is not None and specific_date is not None:
        raise ValidationFailed(
            "Recurring slots cannot have a specific_date",
            field="specific_date",
            value=specific_date,
        )
    if day is None and specific_date is None:
        raise ValidationFailed(
            "One-off slots require a specific_date",
            field="specific_date",
            value=None,
        )

    max_bookings = values.get("max_bookings", 1)
    if isinstance(max_bookings, bool) or not isinstance(max_bookings, int) or max_bookings < 1:
        raise ValidationFailed("max_bookings must be >= 1", field="max_bookings", value=max_bookings)

    is_active = values.get("is_active", True)
    if not isinstance(is_active, bool):
        raise InvalidArgument("is_active must be a boolean", field="is_active", value=is_active)

    return {
        "day_of_week": day,
        "specific_date": specific_date,
        "start_time": values["start_time"],
        "end_time": values["end_time"],
        "max_bookings": max_bookings,
        "is_active": is_active,
    }


def _same_scope(slot: AvailabilitySlot, values: Dict[str, Any]) -> bool:
    candidate_recurring = values.get("day_of_week") is not None
    if slot.is_recurring != candidate_recurring:
        return False
    if candidate_recurring:
        return slot.day_of_week == values["day_of_week"]
    return slot.specific_date == values["specific_date"]


def find_overlapping_slot(
    values: Dict[str, Any],
    slots: Iterable[AvailabilitySlot],
    exclude_slot_id: Optional[int] = None,
) -> Optional[AvailabilitySlot]:
    start = parse_hhmm(values["start_time"], field="start_time")
    end = parse_hhmm(values["end_time"], field="end_time")
    for slot in slots:
        if exclude_slot_id is not None and slot.id == exclude_slot_id:
            continue
        if not slot.is_active or not _same_scope(slot, values):
            continue
        if ranges_overlap(parse_hhmm(slot.start_time), parse_hhmm(slot.end_time), start, end):
            return slot
    return None


@dataclass
class AvailabilityManager:
    store: AvailabilityStore
    locks: ProviderLockRegistry = field(default_factory=ProviderLockRegistry)
    clock: Callable[[], datetime] = utc_now

    def list_slots(self, provider_id: int) -> List[AvailabilitySlot]:
        require_positive_id(provider_id, field="provider_id")
        return self.store.list_for_provider(provider_id)

    def create_slot(
        self,
        provider_id: int,
        data: AvailabilitySlotCreate,
        now: Optional[datetime] = None,
    ) -> AvailabilitySlot:
        require_positive_id(provider_id, field="provider_id")
        supplied = data.model_dump(exclude_none=True)
        values = validate_slot_values({**supplied, "is_active": True})

        with self.locks.hold(provider_id):
            existing = self.store.list_for_provider(provider_id)
            clash = find_overlapping_slot(values, existing)
            if clash:
                raise OverlapConflict(
                    f"Slot overlaps existing slot {clash.id} ({clash.start_time}-{clash.end_time})",
                    field="start_time",
                    value=values["start_time"],
                )
            created = self.store.insert(provider_id, values, now or self.clock())

        logger.info(
            "availability slot created provider_id=%s slot_id=%s scope=%s %s-%s",
            provider_id,
            created.id,
            created.day_of_week if created.is_recurring else created.specific_date,
            created.start_time,
            created.end_time,
        )
        return created

    def update_slot(
        self,
        slot_id: int,
        provider_id: int,
        data: AvailabilitySlotUpdate,
        now: Optional[datetime] = None,
    ) -> AvailabilitySlot:
        require_positive_id(provider_id, field="provider_id")
        require_positive_id(slot_id, field="slot_id")
        # Explicit nulls count as supplied so a slot can switch between recurring and one-off.
        supplied = data.model_dump(exclude_unset=True)

        with self.locks.hold(provider_id):
            current = self.store.get(slot_id, provider_id)
            if not current:
                raise NotFoundOrUnauthorized("Slot not found", field="slot_id", value=slot_id)

            merged = {
                "day_of_week": current.day_of_week,
                "specific_date": current.specific_date,
                "start_time": current.start_time,
                "end_time": current.end_time,
                "max_bookings": current.max_bookings,
                "is_active": current.is_active,
            }
            merged.update(supplied)
            values = validate_slot_values(merged)

            if values["is_active"]:
                others = self.store.list_for_provider(provider_id)
                clash = find_overlapping_slot(values, others, exclude_slot_id=slot_id)
                if clash:
                    raise OverlapConflict(
                        f"Updated slot overlaps existing slot {clash.id} ({clash.start_time}-{clash.end_time})",
                        field="start_time",
                        value=values["start_time"],
                    )

            changes = {key: values[key] for key in supplied}
            updated = self.store.update_fields(slot_id, provider_id, changes, now or self.clock())

        if not updated:
            raise NotFoundOrUnauthorized("Slot not found", field="slot_id", value=slot_id)
        logger.info(
            "availability slot updated provider_id=%s slot_id=%s fields=%s",
            provider_id,
            slot_id,
            sorted(changes),
        )
        return updated

    def delete_slot(self, slot_id: int, provider_id: int) -> AvailabilitySlot:
        require_positive_id(provider_id, field="provider_id")
        require_positive_id(slot_id, field="slot_id")
        with self.locks.hold(provider_id):
            deleted = self.store.delete(slot_id, provider_id)
        if not deleted:
            raise NotFoundOrUnauthorized("Slot not found", field="slot_id", value=slot_id)
        logger.info("availability slot deleted provider_id=%s slot_id=%s", provider_id, slot_id)
        return deleted

    def check_availability(self, provider_id: int, date: str, time: str) -> AvailabilityCheckResult:
        """Return the active slots covering ``time`` on ``date``.

        Both slot bounds are inclusive here: a provider working 09:00-12:00 is
        reported available at exactly 12:00.
        """
        require_positive_id(provider_id, field="provider_id")
        day = parse_iso_date(date, field="date")
        moment = parse_hhmm(time, field="time")
        weekday = day_of_week(day)
        normalized_date = day.isoformat()

        matching: List[AvailabilitySlot] = []
        for slot in self.store.list_active_for_provider(provider_id):
            if slot.is_recurring:
                in_scope = slot.day_of_week == weekday
            else:
                in_scope = slot.specific_date == normalized_date
            if not in_scope:
                continue
            if time_in_range(moment, parse_hhmm(slot.start_time), parse_hhmm(slot.end_time)):
                matching.append(slot)
        return AvailabilityCheckResult(available=bool(matching), slots=matching)
