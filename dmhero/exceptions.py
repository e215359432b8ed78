# dmhero/exceptions.py
"""
Shared exception classes used across the codebase.

Search itself never raises on odd text input; these cover the request-level
errors that callers must turn into client responses.
"""

from __future__ import annotations


class DMHeroError(Exception):
    """Base class for application errors."""

    pass


class InvalidScopeError(DMHeroError, ValueError):
    """
    Raised when a scoped request is missing its campaign identifier.

    This is a terminal client error: the request is rejected, not retried.
    """

    pass


class UnknownEntityTypeError(DMHeroError, LookupError):
    """
    Raised when an entity type name has no search plan.

    Examples:
        - "/api/dragons" when no "Dragon" type is configured
        - CLI --type with a misspelled type name
    """

    pass


__all__ = [
    "DMHeroError",
    "InvalidScopeError",
    "UnknownEntityTypeError",
]
