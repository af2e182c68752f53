import json
import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

from servicehub.models import (
    MatchBreakdown,
    MatchFactor,
    MatchingAlgorithmInfo,
    MatchRequest,
    MatchScore,
    MatchStats,
    ServiceProvider,
    ServiceRequest,
)
from servicehub.services.directory_store import ProviderDirectory
from servicehub.services.errors import InvalidArgument, RequestNotFound
from servicehub.services.geo import distance_km, has_coordinates
from servicehub.services.request_store import RequestStore
from servicehub.services.time_windows import require_positive_id

logger = logging.getLogger(__name__)

MatchCriteria = Union[MatchRequest, ServiceRequest]

WEIGHTS = {
    "category_match": 0.25,
    "location_score": 0.20,
    "quality_score": 0.20,
    "availability_score": 0.15,
    "response_score": 0.10,
    "credits_score": 0.10,
}

FACTOR_NAMES = {
    "category_match": "Category Match",
    "location_score": "Location",
    "quality_score": "Quality Score",
    "availability_score": "Availability",
    "response_score": "Response Time",
    "credits_score": "Credits",
}

ALGORITHM_VERSION = "1.0"

MIN_CREDITS = 1

REASON_HIGH_RATING = "High rating"
REASON_NEARBY = "Nearby"
REASON_FAST_RESPONSE = "Fast response"
REASON_AVAILABLE_NOW = "Available now"
REASON_VERIFIED = "Verified professional"
REASON_FALLBACK = "Service specialist"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def is_eligible(request: MatchCriteria, provider: ServiceProvider) -> bool:
    return provider.credits >= MIN_CREDITS and request.category_id in provider.category_ids


def category_score(request: MatchCriteria, provider: ServiceProvider) -> float:
    return 100.0 if request.category_id in provider.category_ids else 0.0


def location_score(request: MatchCriteria, provider: ServiceProvider) -> float:
    if not (
        has_coordinates(request.latitude, request.longitude)
        and has_coordinates(provider.latitude, provider.longitude)
    ):
        same_city = (request.city or "").strip().lower() == (provider.city or "").strip().lower()
        return 90.0 if same_city else 50.0

    distance = distance_km(request.latitude, request.longitude, provider.latitude, provider.longitude)
    if distance <= 5:
        return 100.0
    if distance <= 10:
        return 85.0
    if distance <= 20:
        return 70.0
    if distance <= 50:
        return 50.0
    return 20.0


def quality_score(provider: ServiceProvider) -> float:
    score = 0.0
    if provider.is_verified:
        score += 30
    if provider.average_rating:
        score += (provider.average_rating / 5) * 50
    else:
        # New providers without reviews.
        score += 25

    jobs = provider.completed_jobs
    if jobs:
        if jobs >= 50:
            score += 20
        elif jobs >= 20:
            score += 15
        elif jobs >= 5:
            score += 10
        else:
            score += 5
    else:
        score += 5
    return min(score, 100.0)


def availability_score(request: MatchCriteria, provider: ServiceProvider) -> float:
    if provider.is_available is None:
        return 50.0

    score = 60.0 if provider.is_available else 20.0
    if request.is_urgent:
        score += 40 if provider.is_available else 10
    else:
        score += 30
    return min(score, 100.0)


def response_score(provider: ServiceProvider) -> float:
    hours = provider.response_time_hours
    if not hours:
        return 60.0
    if hours <= 1:
        return 100.0
    if hours <= 4:
        return 85.0
    if hours <= 12:
        return 70.0
    if hours <= 24:
        return 50.0
    return 30.0


def credits_score(provider: ServiceProvider) -> float:
    if provider.credits >= 20:
        return 100.0
    if provider.credits >= 10:
        return 80.0
    if provider.credits >= 5:
        return 60.0
    if provider.credits >= 1:
        return 40.0
    return 0.0


def estimate_response_time(provider: ServiceProvider) -> str:
    hours = provider.response_time_hours or 12
    if hours <= 1:
        return "Within 1 hour"
    if hours <= 4:
        return "Within 4 hours"
    if hours <= 12:
        return "Today"
    if hours <= 24:
        return "Within 24 hours"
    return "Within 1-2 days"


def recommendation_reasons(breakdown: MatchBreakdown, provider: ServiceProvider) -> List[str]:
    reasons: List[str] = []
    if breakdown.quality_score >= 80:
        reasons.append(REASON_HIGH_RATING)
    if breakdown.location_score >= 80:
        reasons.append(REASON_NEARBY)
    if breakdown.response_score >= 80:
        reasons.append(REASON_FAST_RESPONSE)
    if breakdown.availability_score >= 80:
        reasons.append(REASON_AVAILABLE_NOW)
    if provider.is_verified:
        reasons.append(REASON_VERIFIED)
    if not reasons:
        reasons.append(REASON_FALLBACK)
    return reasons[:2]


def weighted_total(breakdown: MatchBreakdown) -> int:
    values = breakdown.model_dump()
    total = sum(values[name] * weight for name, weight in WEIGHTS.items())
    return _round_half_up(total)


@dataclass
class MatchScorer:
    telemetry_enabled: bool = True

    def score(self, request: MatchCriteria, provider: ServiceProvider) -> MatchScore:
        breakdown = MatchBreakdown(
            category_match=category_score(request, provider),
            location_score=location_score(request, provider),
            quality_score=quality_score(provider),
            availability_score=availability_score(request, provider),
            response_score=response_score(provider),
            credits_score=credits_score(provider),
        )
        distance: Optional[float] = None
        if has_coordinates(request.latitude, request.longitude) and has_coordinates(
            provider.latitude, provider.longitude
        ):
            distance = round(
                distance_km(request.latitude, request.longitude, provider.latitude, provider.longitude),
                2,
            )
        return MatchScore(
            provider_id=provider.id,
            provider=provider,
            total_score=weighted_total(breakdown),
            breakdown=breakdown,
            distance_km=distance,
            estimated_response_time=estimate_response_time(provider),
            recommendation_reasons=recommendation_reasons(breakdown, provider),
        )

    def find_matches(
        self,
        request: MatchCriteria,
        providers: Iterable[ServiceProvider],
        max_results: int = 5,
    ) -> List[MatchScore]:
        if max_results < 1:
            raise InvalidArgument("max_results must be >= 1", field="max_results", value=max_results)

        candidates = list(providers)
        matches = [self.score(request, provider) for provider in candidates if is_eligible(request, provider)]
        # list.sort is stable: equal scores keep candidate order.
        matches.sort(key=lambda match: match.total_score, reverse=True)
        result = matches[:max_results]
        self._log_telemetry(request, candidates=len(candidates), eligible=len(matches), result=result)
        return result

    def _log_telemetry(
        self,
        request: MatchCriteria,
        *,
        candidates: int,
        eligible: int,
        result: List[MatchScore],
    ) -> None:
        if not self.telemetry_enabled:
            return
        payload = {
            "category_id": request.category_id,
            "is_urgent": bool(request.is_urgent),
            "has_coordinates": has_coordinates(request.latitude, request.longitude),
            "candidates": candidates,
            "eligible": eligible,
            "returned": len(result),
            "top_score": result[0].total_score if result else None,
        }
        logger.info("match_telemetry=%s", json.dumps(payload, sort_keys=True))


@dataclass
class MatchingService:
    """Feeds directory candidates into the scorer for ad-hoc criteria or stored requests."""

    scorer: MatchScorer
    provider_directory: ProviderDirectory
    request_store: RequestStore
    default_max_results: int = 5

    def find_matches(
        self,
        criteria: MatchCriteria,
        max_results: Optional[int] = None,
    ) -> Tuple[List[MatchScore], int]:
        require_positive_id(criteria.category_id, field="category_id")
        if not (criteria.city or "").strip():
            raise InvalidArgument("city is required", field="city", value=criteria.city)
        limit = self.default_max_results if max_results is None else max_results
        candidates = self.provider_directory.list_eligible_providers(criteria.category_id)
        return self.scorer.find_matches(criteria, candidates, limit), len(candidates)

    def find_matches_for_request(
        self,
        request_id: int,
        max_results: Optional[int] = None,
    ) -> Tuple[ServiceRequest, List[MatchScore], int]:
        require_positive_id(request_id, field="request_id")
        request = self.request_store.get(request_id)
        if not request:
            raise RequestNotFound("Service request not found", field="request_id", value=request_id)
        matches, total = self.find_matches(request, max_results)
        return request, matches, total

    def match_stats(self) -> MatchStats:
        counts = self.provider_directory.count_providers(min_credits=MIN_CREDITS)
        return MatchStats(
            total_providers=counts["total"],
            verified_providers=counts["verified"],
            active_providers=counts["active"],
            matching_algorithm=MatchingAlgorithmInfo(
                version=ALGORITHM_VERSION,
                factors=[
                    MatchFactor(key=key, name=FACTOR_NAMES[key], weight=weight) for key, weight in WEIGHTS.items()
                ],
            ),
        )
