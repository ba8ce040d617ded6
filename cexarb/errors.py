# cexarb/errors.py
"""
Exception hierarchy for the arbitrage engine.

Venue-level failures are reported through these types so the scan loop can
degrade them to "skip this tick" or "abort this execution" with a log line.
"""

from typing import Any, Dict, Optional


class ArbitrageError(Exception):
    """Base exception for all arbitrage engine errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigError(ArbitrageError):
    """Raised when the configuration is missing or inconsistent."""

    pass


class VenueError(ArbitrageError):
    """Raised when a venue call fails outright."""

    def __init__(
        self,
        message: str,
        venue: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.venue = venue


class QuoteUnavailable(VenueError):
    """A venue returned no usable price. Non-fatal, degrades aggregation."""

    pass


class InsufficientData(ArbitrageError):
    """Fewer than two venues produced a valid quote. Aborts the tick."""

    pass


class OrderRejected(VenueError):
    """A venue reported a failed order placement."""

    def __init__(
        self,
        message: str,
        venue: Optional[str] = None,
        code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, venue, details)
        self.code = code


class WithdrawalRejected(OrderRejected):
    """A venue refused a withdrawal, or no deposit address could be resolved."""

    pass


class SettlementTimeout(VenueError):
    """Balance polling exceeded its attempt budget."""

    def __init__(
        self,
        message: str,
        venue: Optional[str] = None,
        asset: Optional[str] = None,
        attempts: int = 0,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, venue, details)
        self.asset = asset
        self.attempts = attempts


class NotificationDeliveryFailed(ArbitrageError):
    """A notification could not be delivered. Always logged, never fatal."""

    pass
