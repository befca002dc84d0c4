"""Stored bookmark administration (server store only).

Stored bookmarks never expire on their own; these endpoints are how an
operator lists and removes them.
"""

import logging
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from backend.models import StoredBookmarksResponse
from backend.routers.session_guards import bookmark_error_response
from bookmarking import BookmarkError, BookmarkStore

logger = logging.getLogger(__name__)


def setup_bookmarks_router(store: Optional[BookmarkStore]) -> APIRouter:
    """Create the stored-bookmarks router.

    Endpoints:
        GET /api/bookmarks
        DELETE /api/bookmarks/{state_id}
    """
    router = APIRouter(prefix="/api/bookmarks", tags=["bookmarks"])

    def _no_store() -> JSONResponse:
        return JSONResponse({"error": "Server-side bookmark store is not enabled"}, status_code=400)

    @router.get("", response_model=StoredBookmarksResponse)
    async def list_bookmarks():
        """List the state ids held by the server store."""
        if store is None:
            return _no_store()
        try:
            state_ids = store.list_ids()
        except BookmarkError as e:
            return bookmark_error_response(e)
        return StoredBookmarksResponse(state_ids=state_ids, count=len(state_ids))

    @router.delete("/{state_id}")
    async def delete_bookmark(state_id: str):
        """Delete one stored bookmark. URLs pointing at it restore defaults afterwards."""
        if store is None:
            return _no_store()
        try:
            deleted = store.delete(state_id)
        except BookmarkError as e:
            return bookmark_error_response(e)

        if not deleted:
            return JSONResponse({"error": f"Bookmark not found: {state_id}"}, status_code=404)
        logger.info(f"Bookmark {state_id} deleted through the API")
        return JSONResponse({"message": f"Bookmark {state_id} deleted"})

    return router
