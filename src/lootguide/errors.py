"""Exception types raised by the deal engine."""

from __future__ import annotations


class LootGuideError(Exception):
    """Base class for all engine errors."""


class ValidationError(LootGuideError, ValueError):
    """An argument was rejected before any I/O took place (unknown day, deal type, ...)."""


class NotFoundError(LootGuideError, LookupError):
    """A mutating operation referenced a record that does not exist."""


class NoVendorsResolved(NotFoundError):
    """None of the requested deal ids resolved to a known vendor."""


class SourceUnavailable(LootGuideError, ConnectionError):
    """The remote data source could not be reached or returned an error."""
