"""Move Score Engine: accelerometer-based choreography move scoring."""

__version__ = "1.0.0"
