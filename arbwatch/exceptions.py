"""
Exception hierarchy for the spread monitoring system.

Only fatal problems are raised out of the polling loop; venue and gas lookup
failures are converted into absent values at the boundary where they occur.
"""

from typing import Any, Dict, Optional


class ArbWatchError(Exception):
    """Base exception for all spread monitoring related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(ArbWatchError):
    """Raised when there are configuration-related issues."""

    pass


class ValidationError(ArbWatchError):
    """Raised when validation of inputs to the engine fails."""

    pass


class DataError(ArbWatchError):
    """Raised when a venue returns unusable market data."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.source = source


class AbiMismatchError(DataError):
    """Raised when a contract ABI lacks a method an adapter needs."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        method: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, source, details)
        self.method = method


class NetworkError(ArbWatchError):
    """Raised when network or connectivity issues occur."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code


class LedgerError(ArbWatchError):
    """Raised when a simulated ledger mutation would break its invariants."""

    def __init__(
        self,
        message: str,
        state: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.state = state
