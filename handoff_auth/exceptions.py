"""
Handoff Exceptions
==================
Exception hierarchy for the authentication handoff core.

Verification outcomes are returned as results, never raised. These
exceptions cover programming errors and channel construction failures.
"""

from typing import Optional


class HandoffError(Exception):
    """Base exception for the handoff core."""

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(message if not details else f"{message}: {details}")


class ChannelCreationError(HandoffError):
    """Raised when a transport channel cannot be built for an endpoint."""

    def __init__(self, endpoint: str, details: Optional[str] = None):
        self.endpoint = endpoint
        super().__init__(f"failed to create channel for {endpoint!r}", details)


class ResultAccessError(HandoffError):
    """Raised when a success-only field is read from a failed result."""
    pass


class ContextAccessError(HandoffError):
    """Raised when an accessor is used on an invalid AuthContext."""
    pass
