"""WebSocket endpoint for live input updates.

Clients send ``{"command": ..., "data": ...}`` messages:

    set_inputs  data is {input_id: value}; applied as one update cycle
    bookmark    explicit bookmark action

Under the automatic policy every connected client of the session receives
``{"type": "location", "query": ...}`` after each capture, so the page can
replace its address bar contents without reloading.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from backend.session_manager import BookmarkSession, SessionManager
from bookmarking import BookmarkError

logger = logging.getLogger(__name__)


async def _handle_command(
    session: BookmarkSession, command: str, data: Any
) -> Optional[Dict[str, Any]]:
    if command == "set_inputs":
        if not isinstance(data, dict):
            return {"success": False, "error": "set_inputs expects an object of input values."}
        try:
            changed, record = session.apply_inputs(data)
        except KeyError as e:
            return {"success": False, "error": str(e.args[0])}
        except BookmarkError as e:
            return {"success": False, "error": f"Bookmark failed: {e}"}
        if record is not None:
            await session.broadcast({"type": "location", "query": record.query})
        return {"success": True, "type": "inputs", "changed": changed, "inputs": session.inputs.values()}

    if command == "bookmark":
        try:
            record = session.bookmark()
        except BookmarkError as e:
            return {"success": False, "error": f"Bookmark failed: {e}"}
        return {
            "success": True,
            "type": "bookmark",
            "mode": record.mode.value,
            "query": record.query,
            "state_id": record.state_id,
        }

    return {"success": False, "error": f"Unknown command: {command}"}


async def _handle_websocket(
    websocket: WebSocket,
    session_manager: SessionManager,
    session_id: str,
) -> None:
    session = session_manager.get_session(session_id)
    client_added = False

    try:
        await websocket.accept()

        if session is None:
            await websocket.send_json({"success": False, "error": "Session not found."})
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        session.clients.add(websocket)
        client_added = True

        # Initial state so a new client renders immediately
        await websocket.send_json({"type": "session", **session.to_dict()})

        while True:
            try:
                message = await websocket.receive()
            except WebSocketDisconnect:
                break

            if message["type"] == "websocket.disconnect":
                break
            if message["type"] != "websocket.receive":
                continue

            raw_text = message.get("text")
            if raw_text is None and message.get("bytes"):
                try:
                    raw_text = message["bytes"].decode("utf-8")
                except UnicodeDecodeError:
                    await websocket.send_json(
                        {"success": False, "error": "Invalid message encoding."}
                    )
                    continue

            if not raw_text:
                continue

            try:
                payload = json.loads(raw_text)
            except json.JSONDecodeError:
                await websocket.send_json({"success": False, "error": "Invalid JSON payload."})
                continue

            command = payload.get("command") if isinstance(payload, dict) else None
            if not command:
                continue

            response = await _handle_command(session, command, payload.get("data"))
            if response is not None:
                await websocket.send_text(json.dumps(response))
    except Exception:
        logger.exception("WebSocket error for session %s", session_id)
    finally:
        if client_added and session is not None:
            session.clients.discard(websocket)


def setup_router(session_manager: SessionManager) -> APIRouter:
    """Create the websocket router with session dependencies."""
    router = APIRouter()

    @router.websocket("/ws/{session_id}")
    async def websocket_session(websocket: WebSocket, session_id: str) -> None:
        await _handle_websocket(websocket, session_manager, session_id)

    return router
