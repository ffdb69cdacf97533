from __future__ import annotations


class FileHostError(Exception):
    """Base class for failures the dispatcher turns into a reply."""


class ValidationError(FileHostError):
    pass


class AuthorizationError(FileHostError):
    pass


class NotFoundError(FileHostError):
    pass


class CollaboratorError(FileHostError):
    """Messaging or artifact storage call failed or timed out."""

    # Set when a timed out store call is still running in the background.
    pending = False


class ConcurrencyConflict(FileHostError):
    """Admission race lost. Reported to the actor as a normal quota-exceeded reply."""

    def __init__(self, message: str, snapshot: object | None = None) -> None:
        super().__init__(message)
        self.snapshot = snapshot
