"""
Session Module

Single-slot recording session lifecycle: orchestration, background task
supervision and stop watchdogs.
"""

from .orchestrator import SessionOrchestrator
from .supervisor import TaskSupervisor
from .watchdog import InactivityWatchdog, MaxDurationWatchdog, StopWatchdog, watchdogs_from_settings

__all__ = [
    "SessionOrchestrator",
    "TaskSupervisor",
    "StopWatchdog",
    "MaxDurationWatchdog",
    "InactivityWatchdog",
    "watchdogs_from_settings",
]
