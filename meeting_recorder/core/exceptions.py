"""
Custom exceptions for the Meeting Recorder.
"""

from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class MeetingRecorderException(Exception):
    """Base exception for Meeting Recorder errors."""

    # Short machine-readable tag reported through the status surface
    kind = "internal_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InvalidJoinRequest(MeetingRecorderException, ValueError):
    """Raised when a join request is malformed (e.g. empty meeting target)."""
    kind = "bad_request"


class SessionConflictError(MeetingRecorderException):
    """Raised when a join arrives while another session is still in flight."""
    kind = "conflict"


class NoActiveSessionError(MeetingRecorderException):
    """Raised when stop is requested while idle."""
    kind = "no_active_session"


class JoinFailedError(MeetingRecorderException):
    """Raised when the automation driver cannot reach or enter the meeting."""
    kind = "join_failed"


class ConversionFailedError(MeetingRecorderException):
    """Raised when the captured audio cannot be turned into an artifact."""
    kind = "conversion_failed"

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        reason: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.exit_code = exit_code
        self.reason = reason
        details = dict(details or {})
        if exit_code is not None:
            details.setdefault("exit_code", exit_code)
        if reason:
            details.setdefault("reason", reason)
        super().__init__(message, details)


class EmptyCaptureError(ConversionFailedError):
    """Raised when a session stops without a single captured fragment."""
    kind = "empty_capture"

    def __init__(self, message: str = "No audio fragments were captured"):
        super().__init__(message, reason="empty capture")


class DeliveryFailedError(MeetingRecorderException):
    """Raised when a configured webhook cannot receive the artifact."""
    kind = "delivery_failed"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.status_code = status_code
        super().__init__(message, details)


class ConfigurationError(MeetingRecorderException):
    """Raised when configuration is invalid."""
    kind = "configuration_error"


# HTTP Exceptions for API responses
class HTTPBadRequest(HTTPException):
    """400 Bad Request"""
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class HTTPConflict(HTTPException):
    """409 Conflict"""
    def __init__(self, detail: str = "Resource conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class HTTPInternalServerError(HTTPException):
    """500 Internal Server Error"""
    def __init__(self, detail: str = "Internal server error"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
