"""Helper guards for session-scoped endpoints."""

from __future__ import annotations

from fastapi.responses import JSONResponse

from backend.session_manager import BookmarkingDisabled, BookmarkSession, SessionManager
from bookmarking import BookmarkError, NotFoundError, ParseError, StorageUnavailable, UnsupportedValueError


def get_session_or_error(
    session_manager: SessionManager,
    session_id: str,
) -> tuple[BookmarkSession | None, JSONResponse | None]:
    """Resolve a session or return an error response.

    Returns:
        Tuple of (session, error). One will be None.
    """
    session = session_manager.get_session(session_id)
    if session is not None:
        return session, None
    return None, JSONResponse({"error": f"Session not found: {session_id}"}, status_code=404)


def bookmark_error_status(error: BookmarkError) -> int:
    """HTTP status for a failed bookmark operation."""
    if isinstance(error, BookmarkingDisabled):
        return 400
    if isinstance(error, UnsupportedValueError):
        return 422
    # StorageUnavailable before NotFoundError: it is a subclass
    if isinstance(error, StorageUnavailable):
        return 503
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, ParseError):
        return 400
    return 500


def bookmark_error_response(error: BookmarkError) -> JSONResponse:
    return JSONResponse({"error": str(error)}, status_code=bookmark_error_status(error))
