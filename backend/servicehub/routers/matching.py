from typing import List, Optional

from fastapi import APIRouter, Query

from servicehub.models import Category, FindMatchesResponse, MatchRequest, MatchRequestInfo, MatchScore, MatchStats
from servicehub.routers.http_errors import raise_scheduling_http_error
from servicehub.services.errors import SchedulingError
from servicehub.wiring import category_directory, matching_service

router = APIRouter(prefix="/matching", tags=["matching"])


def _build_response(
    *,
    category_id: int,
    city: str,
    is_urgent: bool,
    matches: List[MatchScore],
    total_providers: int,
) -> FindMatchesResponse:
    return FindMatchesResponse(
        request_info=MatchRequestInfo(
            category_id=category_id,
            category_name=category_directory.get_name(category_id) or "Unknown",
            city=city,
            is_urgent=is_urgent,
            total_providers=total_providers,
            matching_providers=len(matches),
        ),
        matches=matches,
    )


@router.post("/find-matches", response_model=FindMatchesResponse)
def find_matches(request: MatchRequest):
    try:
        matches, total = matching_service.find_matches(request, max_results=request.max_results)
        return _build_response(
            category_id=request.category_id,
            city=request.city,
            is_urgent=request.is_urgent,
            matches=matches,
            total_providers=total,
        )
    except SchedulingError as exc:
        raise_scheduling_http_error(exc)


@router.get("/requests/{request_id}", response_model=FindMatchesResponse)
def find_matches_for_request(request_id: int, max_results: Optional[int] = Query(default=None)):
    try:
        service_request, matches, total = matching_service.find_matches_for_request(
            request_id,
            max_results=max_results,
        )
        return _build_response(
            category_id=service_request.category_id,
            city=service_request.city,
            is_urgent=service_request.is_urgent,
            matches=matches,
            total_providers=total,
        )
    except SchedulingError as exc:
        raise_scheduling_http_error(exc)


@router.get("/categories", response_model=list[Category])
def list_categories():
    return category_directory.list_categories()


@router.get("/match-stats", response_model=MatchStats)
def match_stats():
    return matching_service.match_stats()
