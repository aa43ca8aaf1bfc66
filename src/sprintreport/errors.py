"""Custom exception types for the sprint report generator."""


class SprintReportError(Exception):
    """Base exception for all recoverable sprint report errors."""


class ConfigurationError(SprintReportError):
    """Raised when runtime configuration values are missing or invalid."""


class AuthenticationError(SprintReportError):
    """Raised when Productive API credentials are unavailable."""


class UpstreamFetchError(SprintReportError):
    """Raised when a Productive API page request fails or returns an unexpected response."""
