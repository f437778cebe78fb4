# models.py
# Shared data structures and enums used by the navigation modules.

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sidequest.errors import CoordinateError
from sidequest.navigation.geo_utils import calculate_bearing, haversine_distance


# ---------------------------------------------------------------------------
# Coordinate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Coord:
    """Immutable geographic coordinate. Raises CoordinateError when out of range."""
    lat: float
    lon: float

    def __post_init__(self) -> None:
        for name, value, limit in (("lat", self.lat, 90.0), ("lon", self.lon, 180.0)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise CoordinateError(f"{name} must be a number, got {value!r}")
            if math.isnan(value) or not -limit <= value <= limit:
                raise CoordinateError(f"{name} must be between -{limit:g} and {limit:g}, got {value}")

    @staticmethod
    def parse(lat: Any, lon: Any) -> "Coord":
        """Build a Coord from loosely typed input (query strings, JSON numbers)."""
        try:
            return Coord(float(lat), float(lon))
        except (TypeError, ValueError) as e:
            if isinstance(e, CoordinateError):
                raise
            raise CoordinateError(f"Invalid coordinate ({lat!r}, {lon!r})") from e

    def distance_to(self, other: "Coord") -> float:
        """Haversine distance in metres."""
        return haversine_distance(self.lat, self.lon, other.lat, other.lon)

    def bearing_to(self, other: "Coord") -> float:
        """Initial bearing in degrees [0, 360); 0 when both points coincide."""
        return calculate_bearing(self.lat, self.lon, other.lat, other.lon)

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lon": self.lon}


# ---------------------------------------------------------------------------
# Target
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Target:
    """A named destination."""
    name: str
    location: Coord
    kind: str = "saved"                     # "saved" | "sidequest"
    completion_radius_m: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "location": self.location.to_dict(),
            "kind": self.kind,
            "completion_radius_m": self.completion_radius_m,
        }


# ---------------------------------------------------------------------------
# Announcements
# ---------------------------------------------------------------------------

class AnnouncementCategory(Enum):
    INFO     = "info"
    SUCCESS  = "success"
    WARNING  = "warning"
    PROGRESS = "progress"


@dataclass(frozen=True)
class Announcement:
    """
    One thing to say, `delay_s` seconds after it is submitted.

    `phrase` names a prebuilt common phrase; when set, `text` is the
    phrase text and no category prefix is spoken.
    """
    text: str
    category: Optional[AnnouncementCategory] = AnnouncementCategory.INFO
    delay_s: float = 0.0
    phrase: Optional[str] = None


# ---------------------------------------------------------------------------
# Navigation session
# ---------------------------------------------------------------------------

@dataclass
class NavigationSession:
    """Live tracking record for one device. Distances are in metres."""
    device_id: str
    target: Target
    start_location: Coord
    last_location: Coord
    last_distance_m: float
    last_announcement_time: datetime
    start_time: datetime
    is_active: bool = True
    has_arrived: bool = False
    total_distance_traveled_m: float = 0.0

    def snapshot(self) -> "NavigationSession":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "device_id": self.device_id,
            "target": self.target.to_dict(),
            "start_location": self.start_location.to_dict(),
            "last_location": self.last_location.to_dict(),
            "last_distance_m": round(self.last_distance_m, 1),
            "last_announcement_time": self.last_announcement_time.isoformat(),
            "start_time": self.start_time.isoformat(),
            "is_active": self.is_active,
            "has_arrived": self.has_arrived,
            "total_distance_traveled_m": round(self.total_distance_traveled_m, 1),
        }


class NavigationStatus(Enum):
    NAVIGATING = "navigating"
    ARRIVED    = "arrived"


@dataclass
class UpdateResult:
    """Returned by NavigationTracker.update() for a tracked device."""
    status: NavigationStatus
    current_distance_m: float
    distance_change_m: float           # positive = got closer
    total_distance_traveled_m: float
    session: NavigationSession
    announcements: List[Announcement] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "current_distance_m": round(self.current_distance_m, 1),
            "distance_change_m": round(self.distance_change_m, 1),
            "total_distance_traveled_m": round(self.total_distance_traveled_m, 1),
            "session": self.session.to_dict(),
            "announcements": [a.text for a in self.announcements],
        }
