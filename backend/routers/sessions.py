"""Session endpoints: open with restore, change inputs, bookmark."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from backend.models import (
    BookmarkResponse,
    SessionResponse,
    UpdateInputsRequest,
    UpdateInputsResponse,
)
from backend.routers.session_guards import bookmark_error_response, get_session_or_error
from backend.session_manager import SessionManager
from bookmarking import BookmarkError

logger = logging.getLogger(__name__)


def _absolute_url(request: Request, query: str) -> str:
    return str(request.base_url).rstrip("/") + "/" + query


def setup_sessions_router(session_manager: SessionManager) -> APIRouter:
    """Create the sessions router.

    Endpoints:
        POST /api/sessions?<page query>
        GET /api/sessions/{session_id}
        PUT /api/sessions/{session_id}/inputs
        POST /api/sessions/{session_id}/bookmark
        DELETE /api/sessions/{session_id}
    """
    router = APIRouter(prefix="/api/sessions", tags=["sessions"])

    @router.post("", status_code=201, response_model=SessionResponse)
    async def open_session(request: Request):
        """Open a session for a page load.

        The page forwards its own query string unchanged; any bookmark in it
        is replayed before the session's first state is returned. A broken
        bookmark never fails the request: defaults are used and the reason
        is listed under ``warnings``.
        """
        session = session_manager.open_session(request.url.query)
        return SessionResponse(**session.to_dict())

    @router.get("/{session_id}", response_model=SessionResponse)
    async def get_session(session_id: str):
        session, error = get_session_or_error(session_manager, session_id)
        if error is not None:
            return error
        return SessionResponse(**session.to_dict())

    @router.put("/{session_id}/inputs", response_model=UpdateInputsResponse)
    async def update_inputs(session_id: str, body: UpdateInputsRequest):
        """Apply input changes as one update cycle."""
        session, error = get_session_or_error(session_manager, session_id)
        if error is not None:
            return error

        try:
            changed, record = session.apply_inputs(body.inputs)
        except KeyError as e:
            return JSONResponse({"error": str(e.args[0])}, status_code=400)
        except BookmarkError as e:
            return bookmark_error_response(e)

        bookmark = record.query if record is not None else None
        if bookmark is not None:
            await session.broadcast({"type": "location", "query": bookmark})

        return UpdateInputsResponse(
            session_id=session_id,
            inputs=session.inputs.values(),
            changed=changed,
            location=session.location,
            bookmark=bookmark,
        )

    @router.post("/{session_id}/bookmark", response_model=BookmarkResponse)
    async def bookmark_session(session_id: str, request: Request):
        """Explicit bookmark action (the bookmark button)."""
        session, error = get_session_or_error(session_manager, session_id)
        if error is not None:
            return error

        try:
            record = session.bookmark()
        except BookmarkError as e:
            return bookmark_error_response(e)

        return BookmarkResponse(
            session_id=session_id,
            mode=record.mode.value,
            query=record.query,
            url=_absolute_url(request, record.query),
            state_id=record.state_id,
        )

    @router.delete("/{session_id}")
    async def close_session(session_id: str):
        if not session_manager.close_session(session_id):
            return JSONResponse({"error": f"Session not found: {session_id}"}, status_code=404)
        return JSONResponse({"message": f"Session {session_id} closed"})

    return router
