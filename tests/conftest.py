from datetime import datetime, timedelta
from itertools import count

import pytest

from sidequest.errors import ProviderError
from sidequest.safety.models import ElementKind, MapFeature

WEEKDAY_AFTERNOON = datetime(2026, 10, 14, 14, 0)   # Wednesday
WEEKDAY_LATE = datetime(2026, 10, 14, 23, 30)       # Wednesday
SATURDAY_2AM = datetime(2026, 10, 17, 2, 0)


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = WEEKDAY_AFTERNOON) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingAnnouncer:
    def __init__(self) -> None:
        self.announcements = []

    def submit(self, announcement) -> None:
        self.announcements.append(announcement)

    @property
    def texts(self):
        return [a.text for a in self.announcements]


class StaticProvider:
    """Returns the same features for every query and records the calls."""

    def __init__(self, features=None) -> None:
        self.features = list(features or [])
        self.calls = []

    def query(self, center, radius_m, rules):
        self.calls.append((center, radius_m, tuple(rules)))
        return list(self.features)


class FailingProvider:
    def __init__(self, error: Exception = None) -> None:
        self.error = error or ProviderError("overpass unreachable")

    def query(self, center, radius_m, rules):
        raise self.error


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def announcer():
    return RecordingAnnouncer()


@pytest.fixture
def make_feature():
    ids = count(1)

    def _make(tags, distance_m=50.0, kind=ElementKind.NODE, lat=None, lon=None):
        return MapFeature(id=next(ids), kind=kind, distance_m=distance_m, tags=dict(tags), lat=lat, lon=lon)

    return _make


@pytest.fixture
def static_provider():
    return StaticProvider


@pytest.fixture
def failing_provider():
    return FailingProvider()
