from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from servicehub.models import (
    AcceptQuoteRequest,
    CancelServiceRequest,
    ProviderActionRequest,
    ProviderAssignRequest,
    QuoteSubmitRequest,
    ServiceRequest,
    ServiceRequestCreate,
)
from servicehub.routers.http_errors import raise_scheduling_http_error
from servicehub.services.errors import SchedulingError
from servicehub.wiring import request_lifecycle

router = APIRouter(prefix="/service-requests", tags=["service-requests"])


@router.post("", response_model=ServiceRequest)
def create_service_request(request: ServiceRequestCreate):
    try:
        return request_lifecycle.create_request(request)
    except SchedulingError as exc:
        raise_scheduling_http_error(exc)


@router.get("", response_model=list[ServiceRequest])
def list_service_requests(
    customer_id: Optional[str] = Query(default=None),
    provider_id: Optional[int] = Query(default=None),
):
    if customer_id is None and provider_id is None:
        raise HTTPException(status_code=400, detail="customer_id or provider_id is required")
    try:
        if provider_id is not None:
            return request_lifecycle.list_for_provider(provider_id)
        return request_lifecycle.list_for_customer(customer_id)
    except SchedulingError as exc:
        raise_scheduling_http_error(exc)


@router.get("/{request_id}", response_model=ServiceRequest)
def get_service_request(request_id: int):
    try:
        return request_lifecycle.get_request(request_id)
    except SchedulingError as exc:
        raise_scheduling_http_error(exc)


@router.post("/{request_id}/assign", response_model=ServiceRequest)
def assign_provider(request_id: int, request: ProviderAssignRequest):
    try:
        return request_lifecycle.assign_provider(request_id, request.customer_id, request.provider_id)
    except SchedulingError as exc:
        raise_scheduling_http_error(exc)


@router.post("/{request_id}/quote", response_model=ServiceRequest)
def quote_service_request(request_id: int, request: QuoteSubmitRequest):
    try:
        return request_lifecycle.quote(request_id, request.provider_id, request.price)
    except SchedulingError as exc:
        raise_scheduling_http_error(exc)


@router.post("/{request_id}/accept", response_model=ServiceRequest)
def accept_service_request(request_id: int, request: AcceptQuoteRequest):
    try:
        return request_lifecycle.accept(request_id, request.customer_id)
    except SchedulingError as exc:
        raise_scheduling_http_error(exc)


@router.post("/{request_id}/start", response_model=ServiceRequest)
def start_service_request(request_id: int, request: ProviderActionRequest):
    try:
        return request_lifecycle.start(request_id, request.provider_id)
    except SchedulingError as exc:
        raise_scheduling_http_error(exc)


@router.post("/{request_id}/complete", response_model=ServiceRequest)
def complete_service_request(request_id: int, request: ProviderActionRequest):
    try:
        return request_lifecycle.complete(request_id, request.provider_id)
    except SchedulingError as exc:
        raise_scheduling_http_error(exc)


@router.post("/{request_id}/cancel", response_model=ServiceRequest)
def cancel_service_request(request_id: int, request: CancelServiceRequest):
    try:
        return request_lifecycle.cancel(request_id, request.actor_role, request.actor_id)
    except SchedulingError as exc:
        raise_scheduling_http_error(exc)
