# location_scorer.py
# Risk score and warnings for a single coordinate.

import logging
import math
from datetime import datetime
from typing import Callable, List, Optional

from sidequest.navigation.models import Coord
from sidequest.navigation.nav_config import NavConfig
from sidequest.safety.feature_classifier import classify_features, hazard_label, major_roads
from sidequest.safety.models import (
    FeatureBucket,
    LocationRiskResult,
    SafetyWarning,
    Severity,
    TimeRiskAssessment,
)
from sidequest.safety.providers import MapFeatureProvider
from sidequest.safety.taxonomy import SAFETY_QUERY_RULES
from sidequest.safety.time_risk import assess_time_risk

logger = logging.getLogger(__name__)

BASE_RISK = 1.0
MAX_RISK = 5.0
DEGRADED_RISK = 2.0          # score when the feature lookup fails
HIGH_RISK_SCORE = 3.5
MODERATE_RISK_SCORE = 2.5


def round_score(value: float) -> float:
    """Round half up to one decimal."""
    return math.floor(value * 10 + 0.5) / 10


def calculate_risk_score(features: FeatureBucket, time_risk: TimeRiskAssessment) -> float:
    """
    Risk score in [0, 5] (0 = very safe), one decimal.

    Risky features and nearby major roads raise the score; safe areas,
    street lights and emergency services lower it; night adds 0.5.
    """
    risk_increase = len(features.risky) * 0.5 + len(major_roads(features.transportation)) * 0.3
    risk_decrease = (
        len(features.safe) * 0.2
        + len(features.lighting) * 0.1
        + len(features.emergency) * 0.15
    )
    time_adjustment = 0.5 if time_risk.is_night else 0.0

    score = BASE_RISK + risk_increase - risk_decrease + time_adjustment
    return max(0.0, min(MAX_RISK, round_score(score)))


def generate_location_warnings(
    features: FeatureBucket,
    risk_score: float,
    time_risk: Optional[TimeRiskAssessment],
) -> List[SafetyWarning]:
    """Warnings for one location, most severe first."""
    warnings: List[SafetyWarning] = []

    if risk_score >= HIGH_RISK_SCORE:
        warnings.append(SafetyWarning(
            "high_risk_location", Severity.WARNING,
            "High risk area detected - exercise extreme caution",
        ))
    elif risk_score >= MODERATE_RISK_SCORE:
        warnings.append(SafetyWarning(
            "moderate_risk_location", Severity.CAUTION,
            "Moderate risk area - stay alert",
        ))

    if features.risky:
        labels = ", ".join(hazard_label(f) for f in features.risky)
        warnings.append(SafetyWarning(
            "infrastructure_hazard", Severity.CAUTION,
            f"Nearby hazards: {labels}",
        ))

    if major_roads(features.transportation):
        warnings.append(SafetyWarning(
            "major_road_nearby", Severity.CAUTION,
            "Major road nearby - use caution when crossing",
        ))

    if time_risk is not None and time_risk.risk_level > 1:
        warnings.append(SafetyWarning(
            "time_based_risk", Severity.INFO,
            f"{', '.join(time_risk.factors)} - extra caution advised",
        ))

    if features.emergency:
        warnings.append(SafetyWarning(
            "emergency_services_nearby", Severity.INFO,
            "Emergency services nearby",
        ))

    return warnings


class LocationRiskScorer:
    """
    Scores one point from nearby map features and the time of day.

    Provider failures never escape: the result degrades to a medium score
    with a single analysis_error notice.

    Args:
        provider: MapFeatureProvider used for the feature lookup.
        config:   NavConfig (feature radius).
        clock:    Callable returning the current datetime.
    """

    def __init__(
        self,
        provider: MapFeatureProvider,
        config: Optional[NavConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.provider = provider
        self.config = config or NavConfig()
        self._clock = clock or datetime.now

    def analyze(self, coord: Coord, section: str = "unknown") -> LocationRiskResult:
        try:
            raw = self.provider.query(coord, self.config.feature_radius_m, SAFETY_QUERY_RULES)
        except Exception as e:
            logger.warning(f"Safety analysis failed at {coord} ({section}): {e}")
            return self.degraded(coord, section)

        features = classify_features(raw)
        time_risk = assess_time_risk(self._clock())
        risk_score = calculate_risk_score(features, time_risk)
        logger.debug(
            f"{section} {coord}: score={risk_score} risky={len(features.risky)} "
            f"safe={len(features.safe)} lighting={len(features.lighting)}"
        )
        return LocationRiskResult(
            section=section,
            coord=coord,
            risk_score=risk_score,
            features=features,
            warnings=generate_location_warnings(features, risk_score, time_risk),
            time_risk=time_risk,
        )

    @staticmethod
    def degraded(coord: Coord, section: str) -> LocationRiskResult:
        """Cautious placeholder used when the area could not be analyzed."""
        return LocationRiskResult(
            section=section,
            coord=coord,
            risk_score=DEGRADED_RISK,
            features=FeatureBucket(),
            warnings=[SafetyWarning(
                "analysis_error", Severity.INFO,
                "Unable to analyze this area - exercise normal caution",
            )],
            degraded=True,
        )
