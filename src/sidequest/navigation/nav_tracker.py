# nav_tracker.py
# State machine that tracks each device's position against its target.
# Call start() once per device, then update() on every GPS fix.

import logging
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sidequest.navigation.models import (
    Announcement,
    AnnouncementCategory,
    Coord,
    NavigationSession,
    NavigationStatus,
    Target,
    UpdateResult,
)
from sidequest.navigation.nav_config import COMMON_PHRASES, NavConfig

logger = logging.getLogger(__name__)


class NavigationTracker:
    """
    Per-device progress tracker with throttled spoken feedback.

    Usage:
        tracker = NavigationTracker(announcer, config)
        tracker.start("D1", Target("Cafe", Coord(37.78, -122.40)), here)

        # Inside GPS loop:
        result = tracker.update("D1", current_coord)   # None once finished

    Sessions live in memory only. Calls for the same device are serialized
    by a per-device lock; different devices never wait on each other.

    Args:
        announcer:    Object with submit(Announcement); None stays silent.
        config:       NavConfig instance for thresholds and delays.
        clock:        Callable returning the current datetime.
        event_logger: Optional NavLogger for the JSON event log.
    """

    def __init__(
        self,
        announcer=None,
        config: Optional[NavConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        event_logger=None,
    ) -> None:
        self.config = config or NavConfig()
        self._announcer = announcer
        self._clock = clock or datetime.now
        self._event_logger = event_logger

        self._sessions: Dict[str, NavigationSession] = {}
        self._device_locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Session control
    # ------------------------------------------------------------------

    def start(self, device_id: str, target: Target, current_location: Coord) -> NavigationSession:
        """
        Begin navigation for a device, replacing any session it already had.

        Returns:
            Snapshot of the new session.
        """
        now = self._clock()
        distance = current_location.distance_to(target.location)
        session = NavigationSession(
            device_id=device_id,
            target=target,
            start_location=current_location,
            last_location=current_location,
            last_distance_m=distance,
            last_announcement_time=now,
            start_time=now,
        )

        with self._lock_for(device_id):
            replaced = device_id in self._sessions
            self._sessions[device_id] = session
            snapshot = session.snapshot()

        if replaced:
            logger.info(f"Replacing previous navigation for device {device_id}.")
        logger.info(f"Navigation started for device {device_id} to {target.name} ({int(distance)} m).")

        self._announce([Announcement(
            f"Navigation started to {target.name}. Distance: {round(distance)} meters.",
            AnnouncementCategory.INFO,
        )])
        self._log_event("started", snapshot)
        return snapshot

    def stop(self, device_id: str, reason: str = "manual") -> bool:
        """
        End navigation for a device. Safe to call for unknown devices.

        Only the default "manual" reason is announced; other reasons are
        internal cleanup and stay silent.

        Returns:
            True if a session was removed.
        """
        with self._lock_for(device_id):
            session = self._sessions.pop(device_id, None)
            if session is None:
                return False
            session.is_active = False
            snapshot = session.snapshot()

        logger.info(f"Navigation stopped for device {device_id}: {reason}")
        if reason == "manual":
            self._announce([Announcement("Navigation cancelled.", AnnouncementCategory.INFO)])
        self._log_event("stopped", snapshot, reason=reason)
        return True

    # ------------------------------------------------------------------
    # Core method, call on every GPS update
    # ------------------------------------------------------------------

    def update(self, device_id: str, current_location: Coord) -> Optional[UpdateResult]:
        """
        Feed a new position for a device.

        Args:
            device_id:        Device identifier.
            current_location: Current geographic position.

        Returns:
            UpdateResult, or None if the device has no active session.
        """
        with self._lock_for(device_id):
            session = self._sessions.get(device_id)
            if session is None or not session.is_active:
                return None

            now = self._clock()
            cfg = self.config
            current_distance = current_location.distance_to(session.target.location)
            distance_change = session.last_distance_m - current_distance
            session.total_distance_traveled_m += session.last_location.distance_to(current_location)

            # 1. Arrival has priority over periodic updates
            if current_distance <= cfg.arrival_threshold_m and not session.has_arrived:
                session.has_arrived = True
                session.is_active = False
                session.last_location = current_location
                session.last_distance_m = current_distance
                del self._sessions[device_id]

                minutes = round((now - session.start_time).total_seconds() / 60)
                announcements = [
                    Announcement(
                        f"You have reached your destination: {session.target.name}. "
                        f"Journey completed in {minutes} minutes.",
                        AnnouncementCategory.SUCCESS,
                    ),
                    self._phrase("destination_reached", cfg.arrival_cue_delay_s),
                ]
                result = UpdateResult(
                    status=NavigationStatus.ARRIVED,
                    current_distance_m=current_distance,
                    distance_change_m=distance_change,
                    total_distance_traveled_m=session.total_distance_traveled_m,
                    session=session.snapshot(),
                    announcements=announcements,
                )
                logger.info(f"Device {device_id} arrived at {session.target.name}.")
            else:
                # 2. Periodic update, throttled
                announcements = []
                elapsed = (now - session.last_announcement_time).total_seconds()
                if elapsed >= cfg.announce_interval_s:
                    announcements = self._progress_announcements(current_distance, distance_change)
                    session.last_announcement_time = now

                session.last_location = current_location
                session.last_distance_m = current_distance
                result = UpdateResult(
                    status=NavigationStatus.NAVIGATING,
                    current_distance_m=current_distance,
                    distance_change_m=distance_change,
                    total_distance_traveled_m=session.total_distance_traveled_m,
                    session=session.snapshot(),
                    announcements=announcements,
                )

        self._announce(result.announcements)
        if result.status == NavigationStatus.ARRIVED:
            self._log_event("arrived", result.session)
        elif result.announcements:
            self._log_event("progress", result.session, distance_change_m=round(distance_change, 1))
        return result

    def _progress_announcements(self, current_distance: float, distance_change: float) -> List[Announcement]:
        """Short cue now, fuller sentence after a delay so the cue is heard first."""
        meters = round(current_distance)
        delay = self.config.progress_detail_delay_s

        if abs(distance_change) > self.config.distance_change_m:
            if distance_change > 0:
                return [
                    self._phrase("getting_closer"),
                    Announcement(
                        f"You are getting closer to your destination. {meters} meters remaining.",
                        AnnouncementCategory.PROGRESS,
                        delay_s=delay,
                    ),
                ]
            return [
                self._phrase("getting_further"),
                Announcement(
                    f"You are moving away from your destination. Current distance: {meters} meters.",
                    AnnouncementCategory.PROGRESS,
                    delay_s=delay,
                ),
            ]

        return [Announcement(
            f"Navigation update: {meters} meters to destination.",
            AnnouncementCategory.PROGRESS,
            delay_s=delay,
        )]

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------

    def get_session(self, device_id: str) -> Optional[NavigationSession]:
        with self._lock_for(device_id):
            session = self._sessions.get(device_id)
            return session.snapshot() if session else None

    def list_sessions(self) -> List[NavigationSession]:
        with self._registry_lock:
            device_ids = list(self._sessions)
        sessions = [self.get_session(d) for d in device_ids]
        return [s for s in sessions if s is not None]

    @property
    def active_count(self) -> int:
        with self._registry_lock:
            return len(self._sessions)

    def get_status(self) -> dict:
        """Active session count, thresholds and a summary per device."""
        cfg = self.config
        return {
            "active_count": self.active_count,
            "thresholds": {
                "distance_change_m": cfg.distance_change_m,
                "announce_interval_s": cfg.announce_interval_s,
                "arrival_threshold_m": cfg.arrival_threshold_m,
            },
            "devices": [
                {
                    "device_id": s.device_id,
                    "target": s.target.name,
                    "current_distance_m": round(s.last_distance_m, 1),
                    "is_active": s.is_active,
                    "start_time": s.start_time.isoformat(),
                }
                for s in self.list_sessions()
            ],
        }

    def set_thresholds(
        self,
        distance_change_m: Optional[float] = None,
        announce_interval_s: Optional[float] = None,
        arrival_threshold_m: Optional[float] = None,
    ) -> None:
        """Adjust tracking thresholds at runtime. None leaves a value unchanged."""
        if distance_change_m is not None:
            self.config.distance_change_m = distance_change_m
        if announce_interval_s is not None:
            self.config.announce_interval_s = announce_interval_s
        if arrival_threshold_m is not None:
            self.config.arrival_threshold_m = arrival_threshold_m
        logger.info(
            f"Navigation thresholds updated: change={self.config.distance_change_m} m, "
            f"interval={self.config.announce_interval_s} s, arrival={self.config.arrival_threshold_m} m"
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _lock_for(self, device_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._device_locks.get(device_id)
            if lock is None:
                lock = self._device_locks[device_id] = threading.Lock()
            return lock

    @staticmethod
    def _phrase(name: str, delay_s: float = 0.0) -> Announcement:
        return Announcement(COMMON_PHRASES[name], category=None, delay_s=delay_s, phrase=name)

    def _announce(self, announcements: List[Announcement]) -> None:
        """Hand announcements to the announcer; its failures never reach the tracker."""
        if self._announcer is None:
            return
        for announcement in announcements:
            try:
                self._announcer.submit(announcement)
            except Exception as e:
                logger.error(f"Announcer failed for '{announcement.text}': {e}")

    def _log_event(self, event: str, session: NavigationSession, **extra) -> None:
        if self._event_logger is not None:
            self._event_logger.log_event(event, session, **extra)
