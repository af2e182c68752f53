import logging
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from servicehub.models import MatchBreakdown, MatchRequest, ServiceProvider
from servicehub.services.directory_store import DEMO_PROVIDERS, ProviderDirectory
from servicehub.services.errors import InvalidArgument, RequestNotFound
from servicehub.services.matching import (
    WEIGHTS,
    MatchingService,
    MatchScorer,
    availability_score,
    credits_score,
    estimate_response_time,
    location_score,
    quality_score,
    response_score,
    weighted_total,
)
from servicehub.services.request_store import RequestStore


def _provider(**overrides):
    values = {
        "id": 1,
        "business_name": "Rosario Plomeria",
        "city": "Rosario",
        "category_ids": [1],
        "is_verified": True,
        "credits": 20,
    }
    values.update(overrides)
    return ServiceProvider(**values)


def _request(**overrides):
    values = {"category_id": 1, "city": "Rosario", "is_urgent": False}
    values.update(overrides)
    return MatchRequest(**values)


def test_exact_city_match_without_coordinates_scores_expected_breakdown():
    scorer = MatchScorer(telemetry_enabled=False)
    match = scorer.score(_request(), _provider(average_rating=4.8))

    assert match.breakdown.category_match == 100
    assert match.breakdown.location_score == 90
    assert match.breakdown.quality_score == pytest.approx(83)
    assert match.breakdown.availability_score == 50
    assert match.breakdown.response_score == 60
    assert match.breakdown.credits_score == 100
    assert match.total_score == 83
    assert match.distance_km is None
    assert match.estimated_response_time == "Today"


def test_available_provider_scores_higher_than_unknown_availability():
    scorer = MatchScorer(telemetry_enabled=False)
    match = scorer.score(_request(), _provider(average_rating=4.8, is_available=True))
    assert match.breakdown.availability_score == 90
    assert match.total_score == 89


def test_all_scores_stay_within_bounds():
    scorer = MatchScorer(telemetry_enabled=False)
    requests = [
        _request(),
        _request(is_urgent=True, latitude=-32.95, longitude=-60.64),
        _request(city="Cordoba"),
    ]
    for request in requests:
        for raw in DEMO_PROVIDERS:
            match = scorer.score(request, ServiceProvider(**raw))
            for value in match.breakdown.model_dump().values():
                assert 0 <= value <= 100
            assert 0 <= match.total_score <= 100


@pytest.mark.parametrize(
    "latitude,expected",
    [
        (0.02, 100),
        (0.08, 85),
        (0.15, 70),
        (0.4, 50),
        (1.0, 20),
    ],
)
def test_location_score_uses_distance_tiers(latitude, expected):
    request = _request(latitude=0.0, longitude=0.0)
    provider = _provider(latitude=latitude, longitude=0.0)
    assert location_score(request, provider) == expected


def test_location_score_falls_back_to_city_comparison():
    provider = _provider(city="ROSARIO ", latitude=-32.9, longitude=-60.6)
    assert location_score(_request(city="rosario"), provider) == 90
    assert location_score(_request(city="Funes"), provider) == 50


def test_distance_is_reported_only_with_both_coordinate_pairs():
    scorer = MatchScorer(telemetry_enabled=False)
    with_coords = scorer.score(
        _request(latitude=0.0, longitude=0.0),
        _provider(latitude=1.0, longitude=0.0),
    )
    assert with_coords.distance_km == pytest.approx(111.19, abs=0.01)
    half = scorer.score(_request(latitude=0.0, longitude=0.0), _provider())
    assert half.distance_km is None


def test_quality_score_defaults_and_cap():
    assert quality_score(_provider(is_verified=False)) == 30
    assert quality_score(_provider(average_rating=5.0, completed_jobs=50)) == 100
    assert quality_score(_provider(is_verified=False, average_rating=0, completed_jobs=0)) == 30
    assert quality_score(_provider(is_verified=False, completed_jobs=4)) == 30
    assert quality_score(_provider(is_verified=False, completed_jobs=5)) == 35
    assert quality_score(_provider(is_verified=False, completed_jobs=20)) == 40


@pytest.mark.parametrize(
    "is_urgent,is_available,expected",
    [
        (True, True, 100),
        (True, False, 30),
        (False, True, 90),
        (False, False, 50),
        (True, None, 50),
        (False, None, 50),
    ],
)
def test_availability_score(is_urgent, is_available, expected):
    assert availability_score(_request(is_urgent=is_urgent), _provider(is_available=is_available)) == expected


@pytest.mark.parametrize(
    "hours,expected,label",
    [
        (None, 60, "Today"),
        (0.5, 100, "Within 1 hour"),
        (3, 85, "Within 4 hours"),
        (12, 70, "Today"),
        (20, 50, "Within 24 hours"),
        (36, 30, "Within 1-2 days"),
    ],
)
def test_response_tiers(hours, expected, label):
    provider = _provider(response_time_hours=hours)
    assert response_score(provider) == expected
    assert estimate_response_time(provider) == label


@pytest.mark.parametrize("credits,expected", [(25, 100), (10, 80), (5, 60), (1, 40), (0, 0)])
def test_credits_tiers(credits, expected):
    assert credits_score(_provider(credits=credits)) == expected


def test_weighted_total_rounds_half_up():
    breakdown = MatchBreakdown(
        category_match=100,
        location_score=50,
        quality_score=50,
        availability_score=50,
        response_score=50,
        credits_score=0,
    )
    assert weighted_total(breakdown) == 58


def test_ineligible_providers_are_excluded():
    scorer = MatchScorer(telemetry_enabled=False)
    providers = [
        _provider(id=1, credits=0),
        _provider(id=2, category_ids=[2, 3]),
        _provider(id=3),
    ]
    matches = scorer.find_matches(_request(), providers)
    assert [match.provider_id for match in matches] == [3]


def test_find_matches_sorts_descending_and_keeps_ties_in_input_order():
    scorer = MatchScorer(telemetry_enabled=False)
    providers = [
        _provider(id=10),
        _provider(id=11, average_rating=5.0, completed_jobs=80, is_available=True),
        _provider(id=12),
        _provider(id=13),
    ]
    matches = scorer.find_matches(_request(), providers, max_results=10)
    assert [match.provider_id for match in matches] == [11, 10, 12, 13]
    scores = [match.total_score for match in matches]
    assert scores == sorted(scores, reverse=True)


def test_find_matches_truncates_and_rejects_invalid_limit():
    scorer = MatchScorer(telemetry_enabled=False)
    providers = [_provider(id=index) for index in range(1, 8)]
    assert len(scorer.find_matches(_request(), providers)) == 5
    assert len(scorer.find_matches(_request(), providers, max_results=2)) == 2
    with pytest.raises(InvalidArgument):
        scorer.find_matches(_request(), providers, max_results=0)


def test_recommendation_reasons_are_capped_at_two():
    scorer = MatchScorer(telemetry_enabled=False)
    match = scorer.score(
        _request(latitude=0.0, longitude=0.0, is_urgent=True),
        _provider(
            latitude=0.01,
            longitude=0.0,
            average_rating=5.0,
            completed_jobs=60,
            response_time_hours=1,
            is_available=True,
        ),
    )
    assert match.recommendation_reasons == ["High rating", "Nearby"]


def test_recommendation_reasons_fall_back_when_nothing_stands_out():
    scorer = MatchScorer(telemetry_enabled=False)
    match = scorer.score(
        _request(city="Cordoba"),
        _provider(is_verified=False, average_rating=1.0, response_time_hours=48, is_available=False),
    )
    assert match.recommendation_reasons == ["Service specialist"]


def test_verified_reason_is_used_when_nothing_else_stands_out():
    scorer = MatchScorer(telemetry_enabled=False)
    match = scorer.score(_request(city="Cordoba"), _provider(average_rating=1.0, response_time_hours=48))
    assert match.recommendation_reasons == ["Verified professional"]


def test_find_matches_logs_telemetry(caplog):
    scorer = MatchScorer(telemetry_enabled=True)
    with caplog.at_level(logging.INFO, logger="servicehub.services.matching"):
        scorer.find_matches(_request(), [_provider(id=1), _provider(id=2, credits=0)])
    lines = [record.getMessage() for record in caplog.records if "match_telemetry=" in record.getMessage()]
    assert len(lines) == 1
    assert '"candidates": 2' in lines[0]
    assert '"eligible": 1' in lines[0]


def test_matching_service_reads_directory_and_stored_requests(tmp_path):
    db_path = str(tmp_path / "matching.sqlite3")
    directory = ProviderDirectory(db_path=db_path, seed_demo_data=True)
    directory.upsert_provider(_provider(id=42, is_verified=False, credits=50))
    request_store = RequestStore(db_path=db_path)
    service = MatchingService(
        scorer=MatchScorer(telemetry_enabled=False),
        provider_directory=directory,
        request_store=request_store,
    )

    matches, total = service.find_matches(_request())
    ids = [match.provider_id for match in matches]
    assert total == 2
    assert set(ids) == {1, 3}
    assert 5 not in ids
    assert 42 not in ids

    stored = request_store.insert(
        {
            "customer_id": "customer-1",
            "category_id": 4,
            "title": "Trim hedges",
            "city": "Rosario",
            "status": "pending",
            "created_at": "2026-03-01T10:00:00+00:00",
            "updated_at": "2026-03-01T10:00:00+00:00",
        }
    )
    request, matches, total = service.find_matches_for_request(stored.id)
    assert request.id == stored.id
    assert [match.provider_id for match in matches] == [4]
    assert matches[0].breakdown.location_score == 90

    with pytest.raises(RequestNotFound):
        service.find_matches_for_request(9999)
    with pytest.raises(InvalidArgument):
        service.find_matches(_request(category_id=0))


def test_matching_service_requires_a_city(tmp_path):
    db_path = str(tmp_path / "matching.sqlite3")
    service = MatchingService(
        scorer=MatchScorer(telemetry_enabled=False),
        provider_directory=ProviderDirectory(db_path=db_path, seed_demo_data=True),
        request_store=RequestStore(db_path=db_path),
    )
    with pytest.raises(InvalidArgument) as exc_info:
        service.find_matches(_request(city="  "))
    assert exc_info.value.field == "city"


def test_match_stats_counts_seeded_directory(tmp_path):
    db_path = str(tmp_path / "matching.sqlite3")
    directory = ProviderDirectory(db_path=db_path, seed_demo_data=True)
    directory.upsert_provider(_provider(id=42, is_verified=False, credits=50))
    service = MatchingService(
        scorer=MatchScorer(telemetry_enabled=False),
        provider_directory=directory,
        request_store=RequestStore(db_path=db_path),
    )

    stats = service.match_stats()
    assert (stats.total_providers, stats.verified_providers, stats.active_providers) == (6, 5, 4)
    assert [factor.key for factor in stats.matching_algorithm.factors] == list(WEIGHTS)
    assert stats.matching_algorithm.factors[0].weight == 0.25


def test_match_stats_on_empty_directory(tmp_path):
    directory = ProviderDirectory(db_path=str(tmp_path / "empty.sqlite3"))
    assert directory.count_providers() == {"total": 0, "verified": 0, "active": 0}
