# errors.py
# Exceptions shared by the navigation and safety modules.


class CoordinateError(ValueError):
    """Latitude/longitude missing, non-numeric or out of range."""


class ProviderError(RuntimeError):
    """The map feature provider could not be reached or returned garbage."""
