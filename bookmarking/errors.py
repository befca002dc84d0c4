"""Exception types raised by the bookmarking layer.

Restore-side errors (ParseError, NotFoundError, StorageUnavailable) are
recovered by the replay trigger; capture-side errors propagate to the host so
a failed bookmark action is reported to the user.
"""

from __future__ import annotations


class BookmarkError(Exception):
    """Base class for all bookmarking failures."""


class ParseError(BookmarkError, ValueError):
    """Raised when a query string or stored record cannot be decoded."""


class NotFoundError(BookmarkError, LookupError):
    """Raised when a stored bookmark cannot be found."""

    def __init__(self, state_id: str, message: str = ""):
        self.state_id = state_id
        super().__init__(message or f"Bookmark not found: {state_id}")


class StorageUnavailable(NotFoundError):
    """Raised when the backing store cannot be reached for a read or write."""

    def __init__(self, state_id: str, reason: str):
        self.reason = reason
        target = state_id or "<new>"
        super().__init__(state_id, f"Bookmark storage unavailable ({target}): {reason}")


class UnsupportedValueError(BookmarkError, TypeError):
    """Raised when an input value cannot be represented in the selected store."""

    def __init__(self, input_id: str, detail: str):
        self.input_id = input_id
        self.detail = detail
        super().__init__(f"Input '{input_id}': {detail}")
