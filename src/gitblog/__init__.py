"""Blog index service backed by short-lived repository snapshots."""

__version__ = "0.1.0"
