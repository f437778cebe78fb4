# nav_logger.py
# Handles all file I/O for the navigation system.
# Appends navigation events as JSON lines and saves route safety reports.

import json
import os
import logging
from datetime import datetime
from typing import Optional

from sidequest.navigation.models import NavigationSession
from sidequest.navigation.nav_config import NavConfig

# Standard Python logger, configured at the app entry point
logger = logging.getLogger(__name__)


class NavLogger:
    """
    Persists navigation events and route reports to JSON files.

    Does nothing when config.log_dir is None.

    Args:
        config: NavConfig instance for file paths and directories.
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        if self.config.log_dir is not None:
            os.makedirs(self.config.log_dir, exist_ok=True)

    @property
    def enabled(self) -> bool:
        return self.config.log_dir is not None

    # ------------------------------------------------------------------
    # Session event logging
    # ------------------------------------------------------------------

    def log_event(self, event: str, session: NavigationSession, **extra) -> None:
        """
        Append a single navigation event to the session log file.

        Args:
            event:   "started" | "progress" | "arrived" | "stopped".
            session: Snapshot of the session the event belongs to.
            extra:   Additional JSON-serialisable fields.
        """
        if not self.enabled:
            return
        entry = {
            "timestamp": datetime.now().isoformat(),
            "event": event,
            "device_id": session.device_id,
            "target": session.target.name,
            "lat": session.last_location.lat,
            "lon": session.last_location.lon,
            "distance_m": round(session.last_distance_m, 1),
            "traveled_m": round(session.total_distance_traveled_m, 1),
        }
        entry.update(extra)
        try:
            with open(self.config.event_filepath, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except IOError as e:
            logger.error(f"Failed to write event log: {e}")

    # ------------------------------------------------------------------
    # Route report persistence
    # ------------------------------------------------------------------

    def save_route_report(self, report: dict) -> bool:
        """
        Serialize a route safety report to JSON.

        Args:
            report: RouteRiskResult.to_dict() output.

        Returns:
            True on success, False on failure or when logging is disabled.
        """
        if not self.enabled:
            return False
        filepath = self.config.report_filepath
        try:
            data = {"saved_at": datetime.now().isoformat(), "report": report}
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            logger.info(f"Route report saved to {filepath}.")
            return True
        except (IOError, TypeError) as e:
            logger.error(f"Failed to save route report to {filepath}: {e}")
            return False

    def load_route_report(self, filepath: Optional[str] = None) -> Optional[dict]:
        """
        Load a previously saved route report.

        Returns:
            The report dict, or None if loading failed.
        """
        path = filepath or self.config.report_filepath
        if path is None:
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return data["report"]
        except (IOError, KeyError, ValueError) as e:
            logger.error(f"Failed to load route report from {path}: {e}")
            return None
