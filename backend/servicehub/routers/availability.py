from fastapi import APIRouter, Query

from servicehub.models import (
    AvailabilityCheckResult,
    AvailabilitySlot,
    AvailabilitySlotCreate,
    AvailabilitySlotUpdate,
)
from servicehub.routers.http_errors import raise_scheduling_http_error
from servicehub.services.errors import SchedulingError
from servicehub.wiring import availability_manager

router = APIRouter(prefix="/providers", tags=["availability"])


@router.get("/{provider_id}/availability", response_model=list[AvailabilitySlot])
def list_slots(provider_id: int):
    try:
        return availability_manager.list_slots(provider_id)
    except SchedulingError as exc:
        raise_scheduling_http_error(exc)


@router.get("/{provider_id}/availability/check", response_model=AvailabilityCheckResult)
def check_availability(
    provider_id: int,
    date: str = Query(...),
    time: str = Query(...),
):
    try:
        return availability_manager.check_availability(provider_id, date=date, time=time)
    except SchedulingError as exc:
        raise_scheduling_http_error(exc)


@router.post("/{provider_id}/availability", response_model=AvailabilitySlot)
def create_slot(provider_id: int, request: AvailabilitySlotCreate):
    try:
        return availability_manager.create_slot(provider_id, request)
    except SchedulingError as exc:
        raise_scheduling_http_error(exc)


@router.post("/{provider_id}/availability/{slot_id}/update", response_model=AvailabilitySlot)
def update_slot(provider_id: int, slot_id: int, request: AvailabilitySlotUpdate):
    try:
        return availability_manager.update_slot(slot_id, provider_id, request)
    except SchedulingError as exc:
        raise_scheduling_http_error(exc)


@router.delete("/{provider_id}/availability/{slot_id}", response_model=AvailabilitySlot)
def delete_slot(provider_id: int, slot_id: int):
    try:
        return availability_manager.delete_slot(slot_id, provider_id)
    except SchedulingError as exc:
        raise_scheduling_http_error(exc)
