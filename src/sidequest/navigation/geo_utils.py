# geo_utils.py
# Pure mathematical / geographic helper functions.
# No side effects, no imports from other project modules.

import math
from typing import List, Tuple

import numpy as np


EARTH_RADIUS_M = 6_371_000.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in metres.

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Distance in metres.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_distances(lat: float, lon: float, lats, lons) -> np.ndarray:
    """
    Vectorised haversine from one origin to many points.

    Args:
        lat, lon:   Origin in decimal degrees.
        lats, lons: Sequences (or arrays) of destination coordinates.

    Returns:
        Array of distances in metres, same length as lats.
    """
    lats = np.radians(np.asarray(lats, dtype=float))
    lons = np.radians(np.asarray(lons, dtype=float))
    rlat, rlon = math.radians(lat), math.radians(lon)
    a = (
        np.sin((lats - rlat) / 2) ** 2
        + math.cos(rlat) * np.cos(lats) * np.sin((lons - rlon) / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Forward azimuth (bearing) from point 1 to point 2 in degrees [0, 360).

    Identical points have no defined bearing; atan2(0, 0) yields 0.

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Bearing in degrees.
    """
    rlat1, rlon1 = math.radians(lat1), math.radians(lon1)
    rlat2, rlon2 = math.radians(lat2), math.radians(lon2)
    d_lon = rlon2 - rlon1
    y = math.sin(d_lon) * math.cos(rlat2)
    x = math.cos(rlat1) * math.sin(rlat2) - math.sin(rlat1) * math.cos(rlat2) * math.cos(d_lon)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def get_clock_direction(heading: float, target_bearing: float) -> str:
    """
    Clock-face direction of a target relative to the user's heading.

    Args:
        heading:        Direction the user is facing, degrees.
        target_bearing: Bearing to the target, degrees.

    Returns:
        e.g. "at 2 o'clock". 12 o'clock is straight ahead.
    """
    diff = (target_bearing - heading + 360) % 360
    clock_hour = int((diff + 15) // 30) % 12
    if clock_hour == 0:
        clock_hour = 12
    return f"at {clock_hour} o'clock"


def interpolate_points(
    lat1: float, lon1: float, lat2: float, lon2: float, segments: int
) -> List[Tuple[float, float]]:
    """
    Evenly spaced points on the straight lat/lon line between two coordinates.

    Not a road-network path; it is a sampling of the straight line.

    Returns:
        segments + 1 (lat, lon) tuples, endpoints included.
    """
    if segments < 1:
        raise ValueError("segments must be >= 1")
    points = []
    for i in range(segments + 1):
        progress = i / segments
        points.append((
            lat1 + (lat2 - lat1) * progress,
            lon1 + (lon2 - lon1) * progress,
        ))
    return points
