"""Replay, list, export and edit the items of a Things Cloud task history."""

__version__ = "0.1.0"

__all__ = ["account", "actions", "export", "items", "listing", "output"]