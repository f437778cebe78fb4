# nav_config.py
# All tuneable constants in one place.
# Pass a NavConfig instance to every module that needs settings.

import os
from dataclasses import dataclass
from typing import Optional


# ---------------------------------------------------------------------------
# Road type constants (used by the risk scorer and classifier)
# ---------------------------------------------------------------------------

MAJOR_ROAD_TYPES: frozenset = frozenset({'motorway', 'trunk', 'primary'})

EMERGENCY_AMENITIES: tuple = ('hospital', 'police', 'fire_station')

OVERPASS_URL: str = "https://overpass-api.de/api/interpreter"

# Short prebuilt phrases, played by key for a fast cue
COMMON_PHRASES: dict = {
    "destination_reached": "Congratulations! You have reached your destination!",
    "getting_closer":      "You are getting closer to your destination",
    "getting_further":     "You are moving away from your destination",
    "gps_acquired":        "GPS signal acquired",
    "high_risk_warning":   "Warning: High risk area detected",
    "navigation_started":  "Navigation started",
    "sidequest_available": "Sidequest available nearby",
    "safety_complete":     "Safety check complete",
}


# ---------------------------------------------------------------------------
# Main config
# ---------------------------------------------------------------------------

@dataclass
class NavConfig:
    # Progress tracking
    arrival_threshold_m: float = 20.0      # distance to consider the target reached
    distance_change_m: float = 10.0        # closer/further only above this change
    announce_interval_s: float = 30.0      # minimum gap between periodic announcements
    progress_detail_delay_s: float = 1.5   # spoken detail after the short cue
    arrival_cue_delay_s: float = 2.0       # "arrived" cue after the success message

    # Safety analysis
    feature_radius_m: float = 200.0
    route_segments: int = 5
    route_workers: int = 6                 # waypoint fan-out (segments + 1)
    overpass_url: str = OVERPASS_URL
    provider_timeout_s: float = 20.0
    overpass_query_timeout_s: int = 15
    osm_file: Optional[str] = None         # offline .osm extract for the osmnx provider

    # Active target
    completion_radius_m: float = 20.0

    # Speech
    speech_rate: int = 150
    speech_timeout_s: float = 30.0

    # Logging
    log_dir: Optional[str] = None          # None disables the JSON event log
    event_filename: str = "nav_session.jsonl"
    report_filename: str = "route_report.json"

    @property
    def event_filepath(self) -> Optional[str]:
        if self.log_dir is None:
            return None
        return os.path.join(self.log_dir, self.event_filename)

    @property
    def report_filepath(self) -> Optional[str]:
        if self.log_dir is None:
            return None
        return os.path.join(self.log_dir, self.report_filename)
