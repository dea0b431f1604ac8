"""
Configuration module for the Meeting Recorder.
"""

from .settings import (
    Settings,
    settings,
    BotSettings,
    RecordingSettings,
    DeliverySettings,
    ServerSettings,
)

__all__ = [
    "Settings",
    "settings",
    "BotSettings",
    "RecordingSettings",
    "DeliverySettings",
    "ServerSettings",
]
