# providers.py
# Map feature providers: fetch tagged OSM elements around a point.
#
# Both providers raise ProviderError on any network, timeout or parse
# failure. Callers decide how to degrade.
#
# Usage:
#   provider = OverpassFeatureProvider(config)
#   features = provider.query(Coord(37.78, -122.41), 200, SAFETY_QUERY_RULES)

import logging
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import osmnx as ox
import requests
# osmnx raises this for an empty result; it is not re-exported at top level
from osmnx._errors import InsufficientResponseError

from sidequest.errors import ProviderError
from sidequest.navigation.geo_utils import haversine_distance, haversine_distances
from sidequest.navigation.models import Coord
from sidequest.navigation.nav_config import NavConfig
from sidequest.safety.models import ElementKind, MapFeature
from sidequest.safety.taxonomy import TagRule, rules_to_tags

logger = logging.getLogger(__name__)


class MapFeatureProvider:
    """Interface: return features within radius_m of center matching any rule."""

    def query(self, center: Coord, radius_m: float, rules: Iterable[TagRule]) -> List[MapFeature]:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Overpass API over HTTP
# ---------------------------------------------------------------------------

def build_overpass_query(center: Coord, radius_m: float, rules: Iterable[TagRule], timeout_s: int = 15) -> str:
    """Overpass QL union of node and way clauses, one pair per rule."""
    around = f"(around:{radius_m:g},{center.lat},{center.lon})"
    lines = []
    for rule in rules:
        if rule.values is None:
            selector = f"[{rule.key}]"
        else:
            selector = f'[{rule.key}~"^({"|".join(sorted(rule.values))})$"]'
        lines.append(f"  node{selector}{around};")
        lines.append(f"  way{selector}{around};")
    body = "\n".join(lines)
    return f"[out:json][timeout:{timeout_s}];\n(\n{body}\n);\nout center meta;"


def _as_degrees(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def parse_overpass_elements(data: dict, center: Coord) -> List[MapFeature]:
    """
    Convert an Overpass JSON response to MapFeatures.

    Ways carry their position in `center`. Malformed elements (non-numeric
    position, tags that are not a mapping, unknown type) and elements
    without a position or without tags are skipped.

    Raises:
        ProviderError: If the payload has no element list.
    """
    if not isinstance(data, dict) or not isinstance(data.get("elements"), list):
        raise ProviderError("Overpass response has no 'elements' list")

    features: List[MapFeature] = []
    for element in data["elements"]:
        if not isinstance(element, dict):
            continue
        position = element.get("center")
        if not isinstance(position, dict):
            position = {}
        lat = _as_degrees(element.get("lat", position.get("lat")))
        lon = _as_degrees(element.get("lon", position.get("lon")))
        tags = element.get("tags")
        if lat is None or lon is None or not isinstance(tags, dict) or not tags:
            continue
        try:
            kind = ElementKind(element.get("type", "node"))
        except ValueError:
            continue
        features.append(MapFeature(
            id=element.get("id"),
            kind=kind,
            distance_m=haversine_distance(center.lat, center.lon, lat, lon),
            tags={str(k): str(v) for k, v in tags.items()},
            lat=lat,
            lon=lon,
        ))
    return features


class OverpassFeatureProvider(MapFeatureProvider):
    """
    Queries the public Overpass API with a bounded timeout.

    Args:
        config:  NavConfig for URL and timeouts.
        session: Optional requests.Session (shared connection pool).
    """

    def __init__(self, config: Optional[NavConfig] = None, session: Optional[requests.Session] = None) -> None:
        self.config = config or NavConfig()
        self._session = session or requests.Session()

    def query(self, center: Coord, radius_m: float, rules: Iterable[TagRule]) -> List[MapFeature]:
        overpass_query = build_overpass_query(center, radius_m, rules, self.config.overpass_query_timeout_s)
        logger.debug(f"Overpass query:\n{overpass_query}")
        try:
            response = self._session.post(
                self.config.overpass_url,
                data=overpass_query.encode("utf-8"),
                headers={"Content-Type": "text/plain"},
                timeout=self.config.provider_timeout_s,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise ProviderError(f"Overpass request failed: {e}") from e
        except ValueError as e:
            raise ProviderError(f"Overpass returned invalid JSON: {e}") from e

        features = parse_overpass_elements(data, center)
        logger.info(f"Overpass: {len(features)} features within {radius_m:g} m of {center}.")
        return features


# ---------------------------------------------------------------------------
# osmnx (online Overpass or an offline .osm extract)
# ---------------------------------------------------------------------------

_NON_TAG_COLUMNS = frozenset({"geometry", "nodes", "ways", "members"})


def _row_tags(row) -> Dict[str, str]:
    tags = {}
    for key, value in row.items():
        if key in _NON_TAG_COLUMNS or not isinstance(value, str) or not value:
            continue
        tags[str(key)] = value
    return tags


def _index_parts(index) -> Tuple[str, int]:
    if isinstance(index, tuple) and len(index) == 2:
        return str(index[0]), index[1]
    return "node", index


class OsmnxFeatureProvider(MapFeatureProvider):
    """
    Features via osmnx GeoDataFrames.

    With config.osm_file set, features are read once per tag set from the
    local extract (osmnx.features_from_xml) and filtered by distance;
    otherwise osmnx queries Overpass around the point.

    Args:
        config: NavConfig (osm_file, provider_timeout_s).
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        self._xml_cache: Dict[str, object] = {}
        # osmnx settings are process-wide; the last provider created sets the timeout
        ox.settings.requests_timeout = self.config.provider_timeout_s

    def query(self, center: Coord, radius_m: float, rules: Iterable[TagRule]) -> List[MapFeature]:
        tags = rules_to_tags(rules)
        try:
            gdf = self._load(center, radius_m, tags)
        except InsufficientResponseError:
            return []
        except (requests.RequestException, OSError, ValueError) as e:
            raise ProviderError(f"osmnx feature query failed: {e}") from e

        features = self._to_features(gdf, center, radius_m)
        logger.info(f"osmnx: {len(features)} features within {radius_m:g} m of {center}.")
        return features

    def _load(self, center: Coord, radius_m: float, tags: Dict[str, object]):
        if self.config.osm_file is None:
            return ox.features_from_point((center.lat, center.lon), tags=tags, dist=radius_m)

        cache_key = repr(sorted(tags.items()))
        if cache_key not in self._xml_cache:
            logger.info(f"Loading features from {self.config.osm_file}")
            self._xml_cache[cache_key] = ox.features_from_xml(self.config.osm_file, tags=tags)
        return self._xml_cache[cache_key]

    @staticmethod
    def _to_features(gdf, center: Coord, radius_m: float) -> List[MapFeature]:
        if gdf is None or len(gdf) == 0:
            return []

        centroids = [geom.centroid for geom in gdf.geometry]
        lats = np.array([c.y for c in centroids])
        lons = np.array([c.x for c in centroids])
        distances = haversine_distances(center.lat, center.lon, lats, lons)

        features: List[MapFeature] = []
        for (index, row), lat, lon, dist in zip(gdf.iterrows(), lats, lons, distances):
            if dist > radius_m:
                continue
            tags = _row_tags(row)
            if not tags:
                continue
            element, osm_id = _index_parts(index)
            try:
                kind = ElementKind(element)
            except ValueError:
                continue
            features.append(MapFeature(
                id=int(osm_id),
                kind=kind,
                distance_m=float(dist),
                tags=tags,
                lat=float(lat),
                lon=float(lon),
            ))
        return features
