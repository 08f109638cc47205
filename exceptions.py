"""Custom exceptions for the Ephemeris Calendar API."""


class EphemerisAPIException(Exception):
    """Base exception for all API errors."""
    pass


class EphemerisCalculationError(EphemerisAPIException):
    """Raised when an ephemeris calculation fails unexpectedly."""
    pass


class InvalidDateRangeError(EphemerisAPIException):
    """Raised when a date range is longer than the configured maximum."""
    pass


class PositionServiceError(EphemerisAPIException):
    """Raised when the remote position service cannot be used."""
    pass
