"""Custom exceptions for the lockout service."""


class LockoutError(Exception):
    """Base class for lockout errors."""


class StoreUnavailableError(LockoutError):
    """Raised when the attempt store cannot be reached or fails mid-operation."""

    def __init__(self, reason: str = "unknown"):
        self.reason = reason
        super().__init__(f"Attempt store unavailable: {reason}")


class InvalidConfigurationError(LockoutError, ValueError):
    """Raised when lockout policy values are rejected at load time."""
