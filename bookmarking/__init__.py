"""Bookmarking for reactive web UIs.

Captures the values of named inputs into a URL query string or a stored
record, and replays them as initial values when a bookmarked URL is opened.
"""

from bookmarking.errors import (
    BookmarkError,
    NotFoundError,
    ParseError,
    StorageUnavailable,
    UnsupportedValueError,
)
from bookmarking.records import BookmarkMode, BookmarkRecord
from bookmarking.registry import DeclaredInputs, InputRegistry
from bookmarking.replay import (
    AutomaticTrigger,
    BookmarkPolicy,
    BookmarkState,
    ExplicitTrigger,
    ReplayTrigger,
    RestoreResult,
    create_trigger,
)
from bookmarking.serializer import InputSnapshot, StateSerializer
from bookmarking.storage import BookmarkStore, FileBookmarkStore, InMemoryBookmarkStore

__version__ = "1.0.0"

__all__ = [
    "AutomaticTrigger",
    "BookmarkError",
    "BookmarkMode",
    "BookmarkPolicy",
    "BookmarkRecord",
    "BookmarkState",
    "BookmarkStore",
    "DeclaredInputs",
    "ExplicitTrigger",
    "FileBookmarkStore",
    "InMemoryBookmarkStore",
    "InputRegistry",
    "InputSnapshot",
    "NotFoundError",
    "ParseError",
    "ReplayTrigger",
    "RestoreResult",
    "StateSerializer",
    "StorageUnavailable",
    "UnsupportedValueError",
    "create_trigger",
]
