"""Wearlog: equipment wear tracking and per-hour activity attribution."""

__version__ = "0.1.0"
