"""
Meeting Handler Module

Browser automation drivers that join meetings and stream their audio.
"""

from .base import AutomationDriver
from .zoom_driver import ZoomWebDriver

__all__ = ["AutomationDriver", "ZoomWebDriver"]
