"""
errors.py – Exception taxonomy shared by both REST clients and the core.

Setup-phase code lets these propagate; the sync loop catches `SyncError`
per action and records the message instead.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for every failure the tool knows how to report."""


class AuthFailure(SyncError):
    """Credentials were rejected."""


class NotFound(SyncError):
    """A ticket, section, suite or case does not exist."""


class Forbidden(SyncError):
    """The remote system refused the operation."""

    def __init__(self, message: str, single_suite_mode: bool = False) -> None:
        super().__init__(message)
        self.single_suite_mode = single_suite_mode


class ValidationError(SyncError):
    """The remote system rejected a payload as malformed."""

    def __init__(self, message: str, details: str = "") -> None:
        super().__init__(message)
        self.details = details


class NetworkError(SyncError):
    """The remote host could not be reached."""


class AddressingError(SyncError):
    """Missing, ambiguous or unmatched suite/section selection."""


class ApiError(SyncError):
    """Any other unexpected HTTP status."""

    def __init__(self, message: str, status: int = 0) -> None:
        super().__init__(message)
        self.status = status
