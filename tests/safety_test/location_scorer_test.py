from datetime import datetime

import pytest

from sidequest.navigation.models import Coord
from sidequest.navigation.nav_config import NavConfig
from sidequest.safety.location_scorer import (
    LocationRiskScorer,
    calculate_risk_score,
    generate_location_warnings,
    round_score,
)
from sidequest.safety.models import FeatureBucket
from sidequest.safety.taxonomy import SAFETY_QUERY_RULES
from sidequest.safety.time_risk import assess_time_risk

HERE = Coord(37.7749, -122.4194)
DAY = assess_time_risk(datetime(2026, 10, 14, 14, 0))


def warning_types(result):
    return [w.type for w in result.warnings]


def test_round_score_rounds_half_up():
    assert round_score(2.25) == 2.3
    assert round_score(0.25) == 0.3
    assert round_score(1.04) == 1.0
    assert round_score(-0.25) == -0.2


def test_school_area_in_daytime_is_low_risk(static_provider, make_feature, clock):
    provider = static_provider([make_feature({"amenity": "school"}), make_feature({"amenity": "school"})])
    scorer = LocationRiskScorer(provider, NavConfig(), clock)

    result = scorer.analyze(HERE, "requested_location")

    assert result.risk_score < 1.5
    assert result.risk_score == 0.6
    assert not result.has_warning("high_risk_location")
    assert not result.has_warning("moderate_risk_location")
    assert not result.degraded
    assert result.section == "requested_location"
    assert result.time_risk.risk_level == 0


def test_provider_receives_radius_and_taxonomy(static_provider, clock):
    provider = static_provider()
    LocationRiskScorer(provider, NavConfig(feature_radius_m=150), clock).analyze(HERE)

    (center, radius, rules), = provider.calls
    assert center == HERE
    assert radius == 150
    assert rules == tuple(SAFETY_QUERY_RULES)


def test_industrial_and_motorway_late_on_weekday(static_provider, make_feature, clock):
    clock.now = datetime(2026, 10, 14, 23, 30)
    provider = static_provider([make_feature({"landuse": "industrial"}), make_feature({"highway": "motorway"})])

    result = LocationRiskScorer(provider, NavConfig(), clock).analyze(HERE)

    # both count as risky features, plus the night adjustment
    assert result.risk_score == 2.5
    assert warning_types(result) == ["moderate_risk_location", "infrastructure_hazard"]
    assert result.warnings[1].message == "Nearby hazards: industrial, motorway"


def test_many_hazards_on_weekend_night(static_provider, make_feature, clock):
    clock.now = datetime(2026, 10, 17, 2, 0)
    provider = static_provider([
        make_feature({"landuse": "industrial"}),
        make_feature({"railway": "rail"}),
        make_feature({"power": "line"}),
        make_feature({"landuse": "quarry"}),
    ])

    result = LocationRiskScorer(provider, NavConfig(), clock).analyze(HERE)

    assert result.risk_score == 3.5
    assert warning_types(result) == ["high_risk_location", "infrastructure_hazard", "time_based_risk"]
    assert result.warnings[0].severity.value == "warning"
    assert "Late night hours" in result.warnings[2].message


def test_score_is_clamped(make_feature):
    risky = FeatureBucket(risky=[make_feature({"landuse": "industrial"}) for _ in range(20)])
    safe = FeatureBucket(safe=[make_feature({"amenity": "school"}) for _ in range(20)])

    assert calculate_risk_score(risky, DAY) == 5.0
    assert calculate_risk_score(safe, DAY) == 0.0


def test_score_is_monotonic_in_risky_features(make_feature):
    previous = -1.0
    for n in range(12):
        bucket = FeatureBucket(
            risky=[make_feature({"landuse": "industrial"}) for _ in range(n)],
            safe=[make_feature({"amenity": "school"}) for _ in range(3)],
        )
        score = calculate_risk_score(bucket, DAY)
        assert score >= previous
        previous = score


def test_protective_features_lower_score(make_feature):
    bucket = FeatureBucket(
        lighting=[make_feature({"highway": "street_lamp"}) for _ in range(2)],
        emergency=[make_feature({"amenity": "hospital"}) for _ in range(2)],
    )
    assert calculate_risk_score(bucket, DAY) == 0.5


def test_major_road_warning_from_transportation_bucket(make_feature):
    bucket = FeatureBucket(transportation=[make_feature({"highway": "primary"})])
    score = calculate_risk_score(bucket, DAY)

    warnings = generate_location_warnings(bucket, score, DAY)

    assert score == 1.3
    assert [w.type for w in warnings] == ["major_road_nearby"]


def test_emergency_services_note_comes_last(make_feature):
    bucket = FeatureBucket(
        risky=[make_feature({"landuse": "industrial"}) for _ in range(4)],
        emergency=[make_feature({"amenity": "police"})],
    )
    warnings = generate_location_warnings(bucket, 4.0, assess_time_risk(datetime(2026, 10, 17, 2, 0)))

    assert [w.type for w in warnings] == [
        "high_risk_location",
        "infrastructure_hazard",
        "time_based_risk",
        "emergency_services_nearby",
    ]


class BrokenProvider:
    def __init__(self, error):
        self.error = error

    def query(self, center, radius_m, rules):
        raise self.error


@pytest.mark.parametrize("error", [RuntimeError("boom"), TimeoutError("slow"), KeyError("elements")])
def test_provider_failure_degrades(error, clock):
    result = LocationRiskScorer(BrokenProvider(error), NavConfig(), clock).analyze(HERE, "segment_2")

    assert result.degraded
    assert result.risk_score == 2.0
    assert result.section == "segment_2"
    assert result.time_risk is None
    assert warning_types(result) == ["analysis_error"]
    assert result.warnings[0].severity.value == "info"


def test_provider_error_degrades(failing_provider, clock):
    result = LocationRiskScorer(failing_provider, NavConfig(), clock).analyze(HERE)
    assert result.degraded
    assert result.features.risky == []


@pytest.mark.parametrize("protective_tags, bucket_name", [
    ({"amenity": "school"}, "safe"),
    ({"highway": "street_lamp"}, "lighting"),
])
def test_score_never_rises_with_protective_features(make_feature, protective_tags, bucket_name):
    hazards = [make_feature({"landuse": "industrial"}) for _ in range(5)]
    night = assess_time_risk(datetime(2026, 10, 17, 2, 0))
    previous = None
    for n in range(45):
        bucket = FeatureBucket(risky=list(hazards))
        setattr(bucket, bucket_name, [make_feature(protective_tags) for _ in range(n)])
        score = calculate_risk_score(bucket, night)
        if previous is not None:
            assert score <= previous
        previous = score
    assert previous == 0.0
