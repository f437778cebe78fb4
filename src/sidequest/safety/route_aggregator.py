# route_aggregator.py
# Samples a straight-line route into waypoints, scores each one and
# aggregates the results into a route verdict.

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import List, Optional, Tuple

import numpy as np

from sidequest.errors import ProviderError
from sidequest.navigation.geo_utils import interpolate_points
from sidequest.navigation.models import Coord
from sidequest.navigation.nav_config import NavConfig
from sidequest.safety.feature_classifier import major_roads
from sidequest.safety.location_scorer import HIGH_RISK_SCORE, LocationRiskScorer, round_score
from sidequest.safety.models import (
    LocationRiskResult,
    Recommendation,
    RouteOverview,
    RouteRiskResult,
    SafetyLevel,
    SafetyWarning,
    Severity,
)

logger = logging.getLogger(__name__)

# (upper bound on average score, level, color, message); last row catches the rest
SAFETY_LEVELS = (
    (1.5, SafetyLevel.SAFE,      "green",  "Route appears generally safe"),
    (2.5, SafetyLevel.MODERATE,  "yellow", "Route has some areas requiring caution"),
    (3.5, SafetyLevel.ELEVATED,  "orange", "Route has elevated risk areas - exercise caution"),
    (None, SafetyLevel.HIGH_RISK, "red",   "High risk route detected - consider alternative path"),
)


def generate_waypoints(start: Coord, end: Coord, segments: int = 5) -> List[Tuple[str, Coord]]:
    """
    (section label, coordinate) pairs from start to end, inclusive.

    Linear lat/lon interpolation: a straight-line sample, not a street route.
    """
    points = interpolate_points(start.lat, start.lon, end.lat, end.lon, segments)
    waypoints = []
    for i, (lat, lon) in enumerate(points):
        if i == 0:
            label = "start"
        elif i == segments:
            label = "destination"
        else:
            label = f"segment_{i}"
        waypoints.append((label, Coord(lat, lon)))
    return waypoints


def aggregate_overall(segments: List[LocationRiskResult]) -> RouteOverview:
    scores = np.array([s.risk_score for s in segments], dtype=float)
    avg = float(scores.mean())

    for upper, level, color, message in SAFETY_LEVELS:
        if upper is None or avg < upper:
            break

    return RouteOverview(
        safety_level=level,
        color=color,
        message=message,
        avg_risk_score=round_score(avg),
        max_risk_score=float(scores.max()),
        total_sections=len(segments),
    )


def generate_route_warnings(segments: List[LocationRiskResult]) -> List[SafetyWarning]:
    """Route-level warnings; per-segment warnings stay on the segments."""
    warnings: List[SafetyWarning] = []

    high_risk = [s for s in segments if s.risk_score >= HIGH_RISK_SCORE]
    if high_risk:
        warnings.append(SafetyWarning(
            "high_risk_area", Severity.WARNING,
            "High risk area detected along your route. Exercise extra caution.",
            details=f"{len(high_risk)} section(s) with elevated risk levels",
            sections=[s.section for s in high_risk],
        ))

    if any(f.tags.get("landuse") == "industrial" for s in segments for f in s.features.risky):
        warnings.append(SafetyWarning(
            "industrial_area", Severity.CAUTION,
            "Industrial area on route. Be aware of heavy vehicle traffic.",
            recommendation="Stay on designated walkways and be extra alert for vehicles",
        ))

    if any(major_roads(s.features.transportation) for s in segments):
        warnings.append(SafetyWarning(
            "major_road", Severity.CAUTION,
            "Route crosses major roads. Use designated crossings only.",
            recommendation="Look for pedestrian bridges, traffic lights, or crosswalks",
        ))

    # Only the first segment's factors; every segment shares the same clock
    timed = [s for s in segments if s.time_risk is not None and s.time_risk.risk_level > 1]
    if timed and timed[0].time_risk.factors:
        first = timed[0].time_risk
        warnings.append(SafetyWarning(
            "time_based", Severity.INFO,
            ", ".join(first.factors),
            recommendation=first.recommendation or "Consider traveling during daylight hours if possible",
        ))

    return warnings


def generate_route_recommendations(segments: List[LocationRiskResult]) -> List[Recommendation]:
    recommendations: List[Recommendation] = []

    lighting = sum(len(s.features.lighting) for s in segments)
    if lighting < 2:
        recommendations.append(Recommendation(
            "lighting",
            "Bring a flashlight or use phone light - limited street lighting detected",
            "medium",
        ))

    if any(s.features.emergency for s in segments):
        recommendations.append(Recommendation(
            "emergency_services",
            "Emergency services (police/hospital/fire) are nearby if needed",
            "info",
        ))

    recommendations.append(Recommendation(
        "general", "Stay aware of your surroundings and trust your instincts", "high",
    ))
    recommendations.append(Recommendation(
        "general", "Share your location with someone you trust", "high",
    ))
    return recommendations


def failed_route_result(error: str) -> RouteRiskResult:
    return RouteRiskResult(
        success=False,
        error=error,
        warnings=[SafetyWarning(
            "system", Severity.INFO,
            "Safety analysis unavailable - proceed with normal caution",
        )],
    )


class RouteRiskAggregator:
    """
    Scores every waypoint of a route in parallel and aggregates.

    All waypoints share one deadline of provider_timeout_s; a waypoint
    whose analysis has not finished by then is treated as degraded. If no
    waypoint could be analyzed at all, the route result is a failure with
    a single system notice; no exception reaches the caller.

    Args:
        scorer: LocationRiskScorer used for each waypoint.
        config: NavConfig (segments, workers, timeout).
    """

    def __init__(self, scorer: LocationRiskScorer, config: Optional[NavConfig] = None) -> None:
        self.scorer = scorer
        self.config = config or NavConfig()

    def analyze(self, start: Coord, end: Coord) -> RouteRiskResult:
        logger.info(f"Analyzing route safety from {start} to {end}")
        try:
            waypoints = generate_waypoints(start, end, self.config.route_segments)
            segments = self._score_waypoints(waypoints)
            if all(s.degraded for s in segments):
                raise ProviderError("no waypoint could be analyzed")

            return RouteRiskResult(
                success=True,
                overall=aggregate_overall(segments),
                warnings=generate_route_warnings(segments),
                recommendations=generate_route_recommendations(segments),
                segments=segments,
            )
        except Exception as e:
            logger.error(f"Route safety analysis error: {e}")
            return failed_route_result("Unable to analyze route safety")

    def _score_waypoints(self, waypoints: List[Tuple[str, Coord]]) -> List[LocationRiskResult]:
        executor = ThreadPoolExecutor(max_workers=max(1, self.config.route_workers))
        try:
            futures = [
                (section, coord, executor.submit(self.scorer.analyze, coord, section))
                for section, coord in waypoints
            ]
            # One deadline for the whole route, not one per waypoint
            wait([f for _, _, f in futures], timeout=self.config.provider_timeout_s)

            results = []
            for section, coord, future in futures:
                if future.done():
                    results.append(future.result())
                else:
                    future.cancel()
                    logger.warning(f"Safety analysis timed out for {section} {coord}")
                    results.append(LocationRiskScorer.degraded(coord, section))
            return results
        finally:
            # Do not wait on a hung provider call
            executor.shutdown(wait=False)
