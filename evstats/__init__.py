"""EVStats: range, battery health, charging and anomaly analytics for one electric vehicle."""

__version__ = "1.0.0"
