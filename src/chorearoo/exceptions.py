"""Custom exception hierarchy for the Chorearoo package."""

from __future__ import annotations


class ChorearooError(Exception):
    """Base class for all Chorearoo specific errors."""


class ChildNotFoundError(ChorearooError):
    """Raised when a child lookup fails."""


class ChoreNotFoundError(ChorearooError):
    """Raised when a chore lookup fails."""


class StoreItemNotFoundError(ChorearooError):
    """Raised when a store item lookup fails."""


class CompletionNotFoundError(ChorearooError):
    """Raised when a chore completion lookup fails."""


class InsufficientFundsError(ChorearooError):
    """Raised when an expense or purchase would overdraw a jar."""


class WeeklyCapExceededError(ChorearooError):
    """Raised when a chore would push the week's earnings over the child's cap."""


class PersistenceError(ChorearooError):
    """Raised when the entity store fails to commit a unit of work."""
