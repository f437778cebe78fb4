"""Sidequest: GPS navigation companion with map-based safety checks."""

__version__ = "0.1.0"
