# models.py
# Data structures produced by the safety analysis modules.

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from sidequest.navigation.models import Coord


# ---------------------------------------------------------------------------
# Map features
# ---------------------------------------------------------------------------

class ElementKind(Enum):
    NODE     = "node"
    WAY      = "way"
    RELATION = "relation"


@dataclass
class MapFeature:
    """One tagged OSM element near the queried point."""
    id: int
    kind: ElementKind
    distance_m: float
    tags: Dict[str, str]
    lat: Optional[float] = None
    lon: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "distance_m": round(self.distance_m, 1),
            "tags": dict(self.tags),
        }


@dataclass
class FeatureBucket:
    """Features grouped by risk category; each feature sits in at most one list."""
    safe: List[MapFeature] = field(default_factory=list)
    risky: List[MapFeature] = field(default_factory=list)
    emergency: List[MapFeature] = field(default_factory=list)
    lighting: List[MapFeature] = field(default_factory=list)
    transportation: List[MapFeature] = field(default_factory=list)

    def to_dict(self) -> Dict[str, list]:
        return {
            name: [f.to_dict() for f in getattr(self, name)]
            for name in ("safe", "risky", "emergency", "lighting", "transportation")
        }


# ---------------------------------------------------------------------------
# Time risk
# ---------------------------------------------------------------------------

@dataclass
class TimeRiskAssessment:
    is_night: bool
    is_late_night: bool
    is_weekend: bool
    risk_level: float
    factors: List[str] = field(default_factory=list)
    recommendation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_night": self.is_night,
            "is_late_night": self.is_late_night,
            "is_weekend": self.is_weekend,
            "risk_level": self.risk_level,
            "factors": list(self.factors),
            "recommendation": self.recommendation,
        }


# ---------------------------------------------------------------------------
# Warnings and recommendations
# ---------------------------------------------------------------------------

class Severity(Enum):
    INFO    = "info"
    CAUTION = "caution"
    WARNING = "warning"


@dataclass
class SafetyWarning:
    """A user-facing notice. Lists of warnings are ordered most severe first."""
    type: str
    severity: Severity
    message: str
    recommendation: Optional[str] = None
    details: Optional[str] = None
    sections: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "type": self.type,
            "severity": self.severity.value,
            "message": self.message,
        }
        if self.recommendation is not None:
            d["recommendation"] = self.recommendation
        if self.details is not None:
            d["details"] = self.details
        if self.sections:
            d["sections"] = list(self.sections)
        return d


@dataclass
class Recommendation:
    type: str
    message: str
    priority: str        # "high" | "medium" | "info"

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "message": self.message, "priority": self.priority}


# ---------------------------------------------------------------------------
# Location and route results
# ---------------------------------------------------------------------------

@dataclass
class LocationRiskResult:
    """
    Risk analysis for one point.

    `degraded` is True when the feature provider failed; the result then
    carries the cautious default score and no features or time risk.
    """
    section: str
    coord: Coord
    risk_score: float
    features: FeatureBucket
    warnings: List[SafetyWarning]
    time_risk: Optional[TimeRiskAssessment] = None
    degraded: bool = False

    def has_warning(self, warning_type: str) -> bool:
        return any(w.type == warning_type for w in self.warnings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "section": self.section,
            "latitude": self.coord.lat,
            "longitude": self.coord.lon,
            "risk_score": self.risk_score,
            "time_risk": self.time_risk.to_dict() if self.time_risk else None,
            "features": self.features.to_dict(),
            "warnings": [w.to_dict() for w in self.warnings],
            "degraded": self.degraded,
        }


class SafetyLevel(Enum):
    SAFE      = "safe"
    MODERATE  = "moderate"
    ELEVATED  = "elevated"
    HIGH_RISK = "high_risk"


@dataclass
class RouteOverview:
    safety_level: SafetyLevel
    color: str
    message: str
    avg_risk_score: float
    max_risk_score: float
    total_sections: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "safety_level": self.safety_level.value,
            "color": self.color,
            "message": self.message,
            "avg_risk_score": self.avg_risk_score,
            "max_risk_score": self.max_risk_score,
            "total_sections": self.total_sections,
        }


@dataclass
class RouteRiskResult:
    success: bool
    warnings: List[SafetyWarning]
    overall: Optional[RouteOverview] = None
    recommendations: List[Recommendation] = field(default_factory=list)
    segments: List[LocationRiskResult] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "success": self.success,
            "warnings": [w.to_dict() for w in self.warnings],
        }
        if self.success:
            d["overall"] = self.overall.to_dict() if self.overall else None
            d["recommendations"] = [r.to_dict() for r in self.recommendations]
            d["analysis"] = [s.to_dict() for s in self.segments]
        else:
            d["error"] = self.error
        return d


# ---------------------------------------------------------------------------
# Destination check and emergency services
# ---------------------------------------------------------------------------

@dataclass
class DestinationCheck:
    is_safe_for_sidequest: bool
    requires_warning: bool
    risk_score: float
    warnings: List[SafetyWarning]
    safety_message: str
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_safe_for_sidequest": self.is_safe_for_sidequest,
            "requires_warning": self.requires_warning,
            "risk_score": self.risk_score,
            "warnings": [w.to_dict() for w in self.warnings],
            "safety_message": self.safety_message,
            "recommendation": self.recommendation,
        }


@dataclass
class EmergencyService:
    id: int
    type: str
    name: str
    lat: Optional[float]
    lon: Optional[float]
    distance_m: int
    address: str = ""
    phone: Optional[str] = None
    website: Optional[str] = None
    emergency: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "latitude": self.lat,
            "longitude": self.lon,
            "distance_m": self.distance_m,
            "address": self.address,
            "phone": self.phone,
            "website": self.website,
            "emergency": self.emergency,
        }
