"""
API v1 endpoints module.
"""

from . import session, health

__all__ = ["session", "health"]
