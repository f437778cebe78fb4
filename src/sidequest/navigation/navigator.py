# navigator.py
# Public entry point for the navigation and safety system.
# Owns no business logic; delegates everything to specialist modules.

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sidequest.navigation.geo_utils import get_clock_direction
from sidequest.navigation.models import Coord, NavigationSession, Target, UpdateResult
from sidequest.navigation.nav_config import NavConfig
from sidequest.navigation.nav_logger import NavLogger
from sidequest.navigation.nav_tracker import NavigationTracker
from sidequest.safety.emergency_finder import EmergencyFinder
from sidequest.safety.location_scorer import LocationRiskScorer
from sidequest.safety.models import (
    DestinationCheck,
    LocationRiskResult,
    RouteRiskResult,
    SafetyWarning,
    Severity,
)
from sidequest.safety.providers import MapFeatureProvider, OsmnxFeatureProvider, OverpassFeatureProvider
from sidequest.safety.route_aggregator import RouteRiskAggregator
from sidequest.tts_stt.tts import Announcer

logger = logging.getLogger(__name__)

SIDEQUEST_SAFE_BELOW = 3.0
SIDEQUEST_WARN_ABOVE = 2.0
COMPASS_RISK_ABOVE = 3.0
APPROACH_MIN_M = 20.0
APPROACH_MAX_M = 100.0


@dataclass
class CompassReading:
    """Bearing and distance from the current fix to the active target."""
    current: Coord
    target: Target
    target_name: str                 # hidden for sidequests
    bearing: int
    distance_m: int
    can_complete: bool
    completion_radius_m: float
    direction: Optional[str] = None  # clock-face, only when a heading is given
    safety_warnings: List[SafetyWarning] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_target": True,
            "current_location": self.current.to_dict(),
            "target": {
                "name": self.target_name,
                "lat": self.target.location.lat,
                "lon": self.target.location.lon,
                "kind": self.target.kind,
            },
            "compass": {
                "bearing": self.bearing,
                "distance_m": self.distance_m,
                "can_complete": self.can_complete,
                "completion_radius_m": self.completion_radius_m,
                "direction": self.direction,
            },
            "safety": {
                "has_warnings": bool(self.safety_warnings),
                "warnings": [w.to_dict() for w in self.safety_warnings],
            },
        }


class CompanionNavigator:
    """
    High-level facade over tracking, safety analysis and speech.

    Typical lifecycle:
        nav = CompanionNavigator()
        nav.start_navigation("D1", Target("Cafe", Coord(37.7849, -122.4094)),
                             Coord(37.7749, -122.4194))

        # GPS loop:
        result = nav.update_navigation_location("D1", Coord(lat, lon))

    Safety usage:
        nav.analyze_location(37.77, -122.41)
        nav.analyze_route(37.77, -122.41, 37.78, -122.40)

    Coordinates passed as raw numbers are validated; CoordinateError is
    raised for out-of-range input.

    Args:
        config:    Optional NavConfig; defaults to NavConfig().
        provider:  MapFeatureProvider; osmnx when config.osm_file is set,
                   Overpass otherwise.
        announcer: Object with submit(Announcement); defaults to Announcer.
        clock:     Callable returning the current datetime.
    """

    def __init__(
        self,
        config: Optional[NavConfig] = None,
        provider: Optional[MapFeatureProvider] = None,
        announcer=None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or NavConfig()
        if provider is None:
            if self.config.osm_file:
                provider = OsmnxFeatureProvider(self.config)
            else:
                provider = OverpassFeatureProvider(self.config)
        if announcer is None:
            announcer = Announcer(self.config)

        self.announcer = announcer
        self._logger = NavLogger(self.config)

        # Specialist modules
        self._tracker    = NavigationTracker(announcer, self.config, clock, self._logger)
        self._scorer     = LocationRiskScorer(provider, self.config, clock)
        self._aggregator = RouteRiskAggregator(self._scorer, self.config)
        self._emergency  = EmergencyFinder(provider)

        self._active_target: Optional[Target] = None
        self._target_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Safety analysis
    # ------------------------------------------------------------------

    def analyze_location(self, lat: float, lng: float, section: str = "requested_location") -> LocationRiskResult:
        """Risk score and warnings for one point. Never fails on provider errors."""
        coord = Coord.parse(lat, lng)
        logger.info(f"Location safety analysis: {coord}")
        return self._scorer.analyze(coord, section)

    def analyze_route(self, from_lat: float, from_lng: float, to_lat: float, to_lng: float) -> RouteRiskResult:
        """Route verdict over straight-line waypoints. Never fails on provider errors."""
        start = Coord.parse(from_lat, from_lng)
        end = Coord.parse(to_lat, to_lng)
        result = self._aggregator.analyze(start, end)
        if result.success:
            self._logger.save_route_report(result.to_dict())
        return result

    def check_destination(self, lat: float, lng: float) -> DestinationCheck:
        """Whether a point is suitable as a sidequest destination."""
        analysis = self.analyze_location(lat, lng, "destination_check")
        safe = analysis.risk_score < SIDEQUEST_SAFE_BELOW
        needs_warning = analysis.risk_score > SIDEQUEST_WARN_ABOVE
        return DestinationCheck(
            is_safe_for_sidequest=safe,
            requires_warning=needs_warning,
            risk_score=analysis.risk_score,
            warnings=analysis.warnings,
            safety_message=(
                "Destination appears safe for exploration" if safe
                else "Destination may require extra caution"
            ),
            recommendation=(
                "Consider choosing a different mystery location" if needs_warning
                else "Destination suitable for adventure"
            ),
        )

    def find_emergency_services(self, lat: float, lng: float, radius_m: float = 1000, kind: str = "all") -> dict:
        """Nearby hospitals/police/fire stations. Raises ProviderError on failure."""
        return self._emergency.summary(Coord.parse(lat, lng), radius_m, kind)

    # ------------------------------------------------------------------
    # Navigation control
    # ------------------------------------------------------------------

    def start_navigation(self, device_id: str, target: Target, current_location: Coord) -> NavigationSession:
        return self._tracker.start(device_id, target, current_location)

    def update_navigation_location(self, device_id: str, current_location: Coord) -> Optional[UpdateResult]:
        return self._tracker.update(device_id, current_location)

    def stop_navigation(self, device_id: str, reason: str = "manual") -> bool:
        return self._tracker.stop(device_id, reason)

    def get_tracker_status(self) -> dict:
        return self._tracker.get_status()

    @property
    def tracker(self) -> NavigationTracker:
        return self._tracker

    # ------------------------------------------------------------------
    # Active target & compass
    # ------------------------------------------------------------------

    def set_active_target(
        self,
        name: str,
        lat: float,
        lng: float,
        kind: str = "saved",
        completion_radius_m: Optional[float] = None,
    ) -> Target:
        """Make a destination the single active target, replacing any other."""
        target = Target(name, Coord.parse(lat, lng), kind, completion_radius_m)
        with self._target_lock:
            self._active_target = target
        logger.info(f"Active target set: {name} ({kind})")
        return target

    def clear_active_target(self) -> None:
        with self._target_lock:
            self._active_target = None

    @property
    def active_target(self) -> Optional[Target]:
        with self._target_lock:
            return self._active_target

    def compass(self, lat: float, lng: float, heading: Optional[float] = None) -> Optional[CompassReading]:
        """
        Bearing/distance from a GPS fix to the active target, with safety notices.

        Returns:
            CompassReading, or None when no target is active.
        """
        current = Coord.parse(lat, lng)
        target = self.active_target
        if target is None:
            return None

        distance = current.distance_to(target.location)
        bearing = current.bearing_to(target.location)
        radius = target.completion_radius_m or self.config.completion_radius_m

        return CompassReading(
            current=current,
            target=target,
            target_name=target.name if target.kind == "saved" else "Mystery Location",
            bearing=round(bearing) % 360,
            distance_m=round(distance),
            can_complete=distance <= radius,
            completion_radius_m=radius,
            direction=get_clock_direction(heading, bearing) if heading is not None else None,
            safety_warnings=self._compass_safety(current, target, distance),
        )

    def _compass_safety(self, current: Coord, target: Target, distance: float) -> List[SafetyWarning]:
        warnings: List[SafetyWarning] = []
        try:
            here = self._scorer.analyze(current, "current_location")
            if here.risk_score > COMPASS_RISK_ABOVE:
                warnings.append(SafetyWarning(
                    "current_location_risk", Severity.WARNING,
                    "You are in a high-risk area - exercise extra caution",
                ))
            if here.time_risk is not None and here.time_risk.risk_level > 1.5:
                warnings.append(SafetyWarning(
                    "time_warning", Severity.CAUTION,
                    f"{', '.join(here.time_risk.factors)} - stay alert",
                ))

            if APPROACH_MIN_M < distance < APPROACH_MAX_M:
                route = self._aggregator.analyze(current, target.location)
                if route.success and route.warnings:
                    warnings.append(SafetyWarning(
                        "approaching_destination", Severity.INFO,
                        f"Approaching destination - {route.warnings[0].message}",
                    ))
        except Exception as e:
            logger.info(f"Safety check skipped: {e}")
        return warnings
