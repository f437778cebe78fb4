import threading

import pytest

from sidequest.navigation.models import AnnouncementCategory, Coord, NavigationStatus, Target
from sidequest.navigation.nav_config import COMMON_PHRASES, NavConfig
from sidequest.navigation.nav_tracker import NavigationTracker

START = Coord(37.7749, -122.4194)
TARGET = Target("Ferry Building", Coord(37.7849, -122.4094))
HALFWAY = Coord(37.7799, -122.4144)
NEAR_TARGET = Coord(37.7848, -122.4094)     # ~11 m from the target


@pytest.fixture
def tracker(announcer, clock):
    return NavigationTracker(announcer, NavConfig(), clock)


def test_start_creates_active_session(tracker, announcer):
    session = tracker.start("D1", TARGET, START)

    assert 1400 < session.last_distance_m < 1500
    assert session.is_active
    assert not session.has_arrived
    assert session.total_distance_traveled_m == 0
    assert session.start_location == START
    assert tracker.active_count == 1

    assert len(announcer.announcements) == 1
    first = announcer.announcements[0]
    assert first.category == AnnouncementCategory.INFO
    assert first.text.startswith("Navigation started to Ferry Building. Distance: ")
    assert first.text.endswith(" meters.")


def test_start_replaces_existing_session(tracker):
    tracker.start("D1", TARGET, START)
    other = Target("Library", Coord(37.7, -122.4))
    tracker.start("D1", other, START)

    assert tracker.active_count == 1
    assert tracker.get_session("D1").target == other


def test_update_without_session_returns_none(tracker):
    assert tracker.update("nobody", START) is None


def test_arrival_removes_session(tracker, announcer, clock):
    tracker.start("D1", TARGET, START)
    clock.advance(12 * 60)

    result = tracker.update("D1", TARGET.location)

    assert result.status == NavigationStatus.ARRIVED
    assert result.current_distance_m == 0
    assert result.session.has_arrived
    assert not result.session.is_active
    assert tracker.get_session("D1") is None
    assert tracker.active_count == 0

    success, cue = result.announcements
    assert success.category == AnnouncementCategory.SUCCESS
    assert "Ferry Building" in success.text
    assert "12 minutes" in success.text
    assert cue.phrase == "destination_reached"
    assert cue.delay_s == 2.0
    assert announcer.announcements[-2:] == [success, cue]


def test_arrival_is_not_repeated(tracker, announcer):
    tracker.start("D1", TARGET, START)
    tracker.update("D1", TARGET.location)
    count = len(announcer.announcements)

    assert tracker.update("D1", TARGET.location) is None
    assert len(announcer.announcements) == count


def test_arrival_within_threshold(tracker):
    tracker.start("D1", TARGET, START)
    result = tracker.update("D1", NEAR_TARGET)
    assert result.status == NavigationStatus.ARRIVED


def test_arrival_ignores_throttle(tracker, clock):
    tracker.start("D1", TARGET, START)
    clock.advance(1)
    result = tracker.update("D1", TARGET.location)
    assert result.status == NavigationStatus.ARRIVED
    assert result.announcements


def test_updates_inside_window_do_not_announce(tracker, announcer, clock):
    tracker.start("D1", TARGET, START)
    announcer.announcements.clear()

    clock.advance(10)
    result = tracker.update("D1", HALFWAY)

    assert result.status == NavigationStatus.NAVIGATING
    assert result.announcements == []
    assert announcer.announcements == []
    session = tracker.get_session("D1")
    assert session.last_location == HALFWAY
    assert session.last_distance_m == pytest.approx(result.current_distance_m)


def test_throttle_allows_one_announcement_per_window(tracker, announcer, clock):
    tracker.start("D1", TARGET, START)
    announcer.announcements.clear()

    clock.advance(31)
    first = tracker.update("D1", HALFWAY)
    clock.advance(10)
    second = tracker.update("D1", START)

    assert first.announcements
    assert second.announcements == []
    assert tracker.get_session("D1").last_location == START

    clock.advance(30)
    third = tracker.update("D1", HALFWAY)
    assert third.announcements


def test_getting_closer_plays_cue_then_detail(tracker, clock):
    tracker.start("D1", TARGET, START)
    clock.advance(30)

    result = tracker.update("D1", HALFWAY)

    assert result.distance_change_m > 10
    cue, detail = result.announcements
    assert cue.phrase == "getting_closer"
    assert cue.text == COMMON_PHRASES["getting_closer"]
    assert cue.category is None
    assert cue.delay_s == 0
    assert detail.category == AnnouncementCategory.PROGRESS
    assert detail.delay_s == 1.5
    assert detail.text.startswith("You are getting closer to your destination.")
    assert detail.text.endswith("meters remaining.")


def test_getting_further(tracker, clock):
    tracker.start("D1", TARGET, HALFWAY)
    clock.advance(30)

    result = tracker.update("D1", START)

    assert result.distance_change_m < -10
    cue, detail = result.announcements
    assert cue.phrase == "getting_further"
    assert detail.text.startswith("You are moving away from your destination.")


def test_small_change_gives_generic_update(tracker, clock):
    tracker.start("D1", TARGET, START)
    clock.advance(45)

    nudge = Coord(37.77491, -122.4194)   # ~1 m
    result = tracker.update("D1", nudge)

    assert abs(result.distance_change_m) <= 10
    (only,) = result.announcements
    assert only.text.startswith("Navigation update: ")
    assert only.category == AnnouncementCategory.PROGRESS


def test_total_distance_accumulates(tracker, clock):
    tracker.start("D1", TARGET, START)
    leg1 = START.distance_to(HALFWAY)

    tracker.update("D1", HALFWAY)
    result = tracker.update("D1", START)

    assert result.total_distance_traveled_m == pytest.approx(2 * leg1)
    assert result.distance_change_m == pytest.approx(-(START.distance_to(TARGET.location) - HALFWAY.distance_to(TARGET.location)))


def test_manual_stop_announces_cancellation(tracker, announcer):
    tracker.start("D1", TARGET, START)
    assert tracker.stop("D1") is True

    assert announcer.texts[-1] == "Navigation cancelled."
    assert tracker.get_session("D1") is None
    assert tracker.update("D1", HALFWAY) is None


def test_non_manual_stop_is_silent(tracker, announcer):
    tracker.start("D1", TARGET, START)
    count = len(announcer.announcements)

    assert tracker.stop("D1", reason="device_disconnected") is True
    assert len(announcer.announcements) == count


def test_stop_unknown_device_is_noop(tracker, announcer):
    assert tracker.stop("ghost") is False
    assert tracker.stop("ghost") is False
    assert announcer.announcements == []


def test_failing_announcer_does_not_break_tracking(clock):
    class BrokenAnnouncer:
        def submit(self, announcement):
            raise RuntimeError("audio device missing")

    tracker = NavigationTracker(BrokenAnnouncer(), NavConfig(), clock)
    tracker.start("D1", TARGET, START)
    clock.advance(31)

    assert tracker.update("D1", HALFWAY).status == NavigationStatus.NAVIGATING
    assert tracker.update("D1", TARGET.location).status == NavigationStatus.ARRIVED


def test_silent_tracker_without_announcer(clock):
    tracker = NavigationTracker(config=NavConfig(), clock=clock)
    tracker.start("D1", TARGET, START)
    assert tracker.update("D1", TARGET.location).status == NavigationStatus.ARRIVED


def test_status_summary(tracker):
    tracker.start("D1", TARGET, START)
    tracker.start("D2", TARGET, HALFWAY)

    status = tracker.get_status()

    assert status["active_count"] == 2
    assert status["thresholds"] == {
        "distance_change_m": 10.0,
        "announce_interval_s": 30.0,
        "arrival_threshold_m": 20.0,
    }
    by_device = {d["device_id"]: d for d in status["devices"]}
    assert set(by_device) == {"D1", "D2"}
    assert by_device["D1"]["target"] == "Ferry Building"
    assert by_device["D1"]["is_active"] is True


def test_snapshots_are_detached(tracker):
    snapshot = tracker.start("D1", TARGET, START)
    snapshot.last_distance_m = -1

    assert tracker.get_session("D1").last_distance_m > 0


def test_set_thresholds(tracker, clock):
    tracker.set_thresholds(arrival_threshold_m=800, announce_interval_s=5)
    tracker.start("D1", TARGET, START)

    assert tracker.config.announce_interval_s == 5
    assert tracker.config.distance_change_m == 10.0
    assert tracker.update("D1", HALFWAY).status == NavigationStatus.ARRIVED


def test_devices_are_tracked_independently(announcer, clock):
    tracker = NavigationTracker(announcer, NavConfig(), clock)
    devices = [f"D{i}" for i in range(20)]
    for d in devices:
        tracker.start(d, TARGET, START)

    def walk(device_id):
        for _ in range(25):
            tracker.update(device_id, HALFWAY)
            tracker.update(device_id, START)

    threads = [threading.Thread(target=walk, args=(d,)) for d in devices]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    expected = 50 * START.distance_to(HALFWAY)
    for d in devices:
        session = tracker.get_session(d)
        assert session.total_distance_traveled_m == pytest.approx(expected)
        assert session.last_location == START


def test_event_logger_receives_lifecycle(announcer, clock):
    events = []

    class EventLog:
        def log_event(self, event, session, **extra):
            events.append((event, session.device_id, extra))

    tracker = NavigationTracker(announcer, NavConfig(), clock, EventLog())
    tracker.start("D1", TARGET, START)
    clock.advance(31)
    tracker.update("D1", HALFWAY)
    tracker.update("D1", TARGET.location)
    tracker.start("D2", TARGET, START)
    tracker.stop("D2", reason="timeout")

    assert [e[0] for e in events] == ["started", "progress", "arrived", "started", "stopped"]
    assert events[-1][2] == {"reason": "timeout"}


def test_concurrent_updates_for_one_device_are_serialized(clock):
    tracker = NavigationTracker(None, NavConfig(), clock)
    tracker.start("D1", TARGET, START)
    workers, fixes_each = 8, 40
    results = []
    results_lock = threading.Lock()

    def walk(n):
        for i in range(fixes_each):
            # every fix is a distinct point, so every update moves
            fix = Coord(37.7760 + n * 0.001 + i * 0.00001, -122.4180 - n * 0.0005)
            result = tracker.update("D1", fix)
            with results_lock:
                results.append(result)

    threads = [threading.Thread(target=walk, args=(n,)) for n in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == workers * fixes_each
    ordered = sorted(results, key=lambda r: r.total_distance_traveled_m)
    previous_location, previous_total = START, 0.0
    for result in ordered:
        location = result.session.last_location
        hop = previous_location.distance_to(location)
        assert result.total_distance_traveled_m == pytest.approx(previous_total + hop)
        assert result.session.last_distance_m == pytest.approx(location.distance_to(TARGET.location))
        previous_location, previous_total = location, result.total_distance_traveled_m

    session = tracker.get_session("D1")
    assert session.total_distance_traveled_m == pytest.approx(previous_total)
    assert session.last_location == previous_location
    assert session.last_distance_m == pytest.approx(previous_location.distance_to(TARGET.location))
