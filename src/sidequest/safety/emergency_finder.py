# emergency_finder.py
# Finds hospitals, police and fire stations around a point.
#
# Usage:
#   finder = EmergencyFinder(provider)
#   services = finder.find(Coord(37.78, -122.41), radius_m=1000, kind="police")

import logging
from typing import List

from sidequest.navigation.models import Coord
from sidequest.navigation.nav_config import EMERGENCY_AMENITIES
from sidequest.safety.models import EmergencyService, MapFeature
from sidequest.safety.providers import MapFeatureProvider
from sidequest.safety.taxonomy import emergency_query_rules

logger = logging.getLogger(__name__)

MIN_RADIUS_M = 100
MAX_RADIUS_M = 5000
SERVICE_KINDS = EMERGENCY_AMENITIES + ("all",)


def _address(tags: dict) -> str:
    if tags.get("addr:full"):
        return tags["addr:full"]
    return f"{tags.get('addr:housenumber', '')} {tags.get('addr:street', '')}".strip()


def to_service(feature: MapFeature) -> EmergencyService:
    tags = feature.tags
    amenity = tags.get("amenity", "")
    return EmergencyService(
        id=feature.id,
        type=amenity,
        name=tags.get("name") or f"{amenity} facility",
        lat=feature.lat,
        lon=feature.lon,
        distance_m=round(feature.distance_m),
        address=_address(tags),
        phone=tags.get("phone"),
        website=tags.get("website"),
        emergency=tags.get("emergency") == "yes",
    )


class EmergencyFinder:
    """
    Emergency service lookup. Unlike risk scoring this is a plain query:
    ProviderError propagates to the caller.

    Args:
        provider: MapFeatureProvider to query.
    """

    def __init__(self, provider: MapFeatureProvider) -> None:
        self.provider = provider

    def find(self, center: Coord, radius_m: float = 1000, kind: str = "all") -> List[EmergencyService]:
        """
        Services of the given kind within radius_m, nearest first.

        Raises:
            ValueError:    radius outside [100, 5000] m or unknown kind.
            ProviderError: the provider failed.
        """
        if not MIN_RADIUS_M <= radius_m <= MAX_RADIUS_M:
            raise ValueError(f"Radius must be between {MIN_RADIUS_M} and {MAX_RADIUS_M} meters")
        if kind not in SERVICE_KINDS:
            raise ValueError(f"Type must be one of {', '.join(SERVICE_KINDS)}")

        features = self.provider.query(center, radius_m, emergency_query_rules(kind))
        wanted = EMERGENCY_AMENITIES if kind == "all" else (kind,)
        services = [to_service(f) for f in features if f.tags.get("amenity") in wanted]
        services.sort(key=lambda s: s.distance_m)
        logger.info(f"{len(services)} emergency services ({kind}) within {radius_m:g} m of {center}.")
        return services

    def summary(self, center: Coord, radius_m: float = 1000, kind: str = "all") -> dict:
        services = self.find(center, radius_m, kind)
        return {
            "services": [s.to_dict() for s in services],
            "count": len(services),
            "search_radius_m": int(radius_m),
            "closest_service": services[0].to_dict() if services else None,
        }
