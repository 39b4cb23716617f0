#!/usr/bin/env python3
"""
Hubwatch Exceptions Module

Custom exception classes for the Hub polling and notification layer.
Centralized exception definitions for consistent error handling.
"""

from typing import Optional

__all__ = [
    "HubIntegrationError",
    "ConfigurationError",
    "MalformedStatusError",
    "LocationMismatchError",
    "ScanFailedError",
    "PollTimeoutError",
    "UnrecognizedStatusError",
    "HubRequestError",
    "NotificationProcessingError",
]


class HubIntegrationError(Exception):
    """Base exception for all Hub integration errors"""
    pass


class ConfigurationError(HubIntegrationError):
    """Raised when inputs are unusable before any polling starts"""
    pass


class MalformedStatusError(HubIntegrationError):
    """Raised when a persisted scan status file lacks required fields"""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class LocationMismatchError(HubIntegrationError):
    """Raised when a requested scan target matches no code location"""

    def __init__(self, message: str, target_path: Optional[str] = None):
        super().__init__(message)
        self.target_path = target_path


class ScanFailedError(HubIntegrationError):
    """Raised when a tracked scan or code location finished in error"""

    def __init__(self, message: str, status: str, identifier: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.identifier = identifier


class PollTimeoutError(HubIntegrationError):
    """Raised when the maximum wait elapses while work is still pending"""

    def __init__(self, message: str, max_wait_seconds: float):
        super().__init__(message)
        self.max_wait_seconds = max_wait_seconds


class UnrecognizedStatusError(HubIntegrationError):
    """Raised when the server reports a status label we cannot interpret"""

    def __init__(self, status: object):
        super().__init__(f"Unrecognized scan status : {status!r}")
        self.status = status


class HubRequestError(HubIntegrationError):
    """Raised when a request to the Hub fails or returns a non-2xx response"""

    def __init__(self, message: str, status_code: Optional[int] = None, url: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class NotificationProcessingError(HubIntegrationError):
    """Raised when a notification processor is misused"""
    pass
