"""UI sessions and their bookmarking wiring.

Each browser page load opens a BookmarkSession: its own input registry,
seeded from any bookmark in the page URL, and its own replay trigger.
Sessions live in memory for as long as the server runs or until closed.
"""

import logging
import time
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from fastapi import WebSocket

from bookmarking import (
    BookmarkError,
    BookmarkRecord,
    BookmarkStore,
    DeclaredInputs,
    ParseError,
    ReplayTrigger,
    RestoreResult,
    StateSerializer,
    create_trigger,
)

logger = logging.getLogger(__name__)


class BookmarkingDisabled(BookmarkError):
    """Raised when a bookmark is requested while bookmarking is turned off."""

    def __init__(self) -> None:
        super().__init__("Bookmarking is disabled on this server")


class BookmarkSession:
    """One UI session: inputs, trigger and connected WebSocket clients."""

    def __init__(self, session_id: str, inputs: DeclaredInputs, store_mode: str):
        self.session_id = session_id
        self.inputs = inputs
        self.store_mode = store_mode
        self.trigger: Optional[ReplayTrigger] = None
        self.location = ""
        self.restore_result = RestoreResult()
        self.created_at = time.time()
        self.clients: Set[WebSocket] = set()

    def attach_trigger(self, trigger: ReplayTrigger) -> None:
        """Route user input changes to the trigger."""
        self.trigger = trigger
        self.inputs.add_listener(lambda input_id, _value: trigger.input_changed(input_id))

    @property
    def policy(self) -> str:
        return self.trigger.policy.value if self.trigger is not None else "none"

    def set_location(self, query: str) -> None:
        """Location updater handed to the trigger."""
        self.location = query
        logger.debug(f"Session {self.session_id[:8]} location -> {query}")

    def apply_inputs(self, changes: Mapping[str, Any]) -> Tuple[List[str], Optional[BookmarkRecord]]:
        """Apply user changes as one update cycle.

        Returns:
            Tuple of (ids whose value actually changed, record captured at the
            end of the cycle or None)

        Raises:
            KeyError: If any id is not a declared input (nothing is applied)
            BookmarkError: If the automatic capture at the end of the cycle fails.
                The changes stay applied and the capture is retried next cycle.
        """
        unknown = [input_id for input_id in changes if input_id not in self.inputs]
        if unknown:
            raise KeyError(f"Unknown input: {', '.join(unknown)}")

        changed = [input_id for input_id, value in changes.items() if self.inputs.set_value(input_id, value)]
        record = self.trigger.flush() if self.trigger is not None else None
        return changed, record

    def bookmark(self) -> BookmarkRecord:
        """Explicit bookmark action.

        Raises:
            BookmarkingDisabled: If bookmarking is turned off
            BookmarkError: If the capture fails
        """
        if self.trigger is None:
            raise BookmarkingDisabled()
        return self.trigger.bookmark()

    async def broadcast(self, message: Dict[str, Any]) -> None:
        """Send a JSON message to every WebSocket attached to this session."""
        for client in list(self.clients):
            try:
                await client.send_json(message)
            except Exception as e:
                logger.warning(f"Dropping client of session {self.session_id[:8]}: {e}")
                self.clients.discard(client)

    def to_dict(self) -> Dict[str, Any]:
        result = self.restore_result
        return {
            "session_id": self.session_id,
            "inputs": self.inputs.values(),
            "location": self.location,
            "store": self.store_mode,
            "policy": self.policy,
            "restored": result.restored,
            "applied": list(result.applied),
            "ignored": list(result.ignored),
            "warnings": list(result.warnings),
            "created_at": self.created_at,
        }


class SessionManager:
    """Opens, tracks and closes UI sessions.

    Args:
        input_defaults: Declared input ids and their defaults
        store_mode: "url", "server" or "disable"
        policy: "explicit" or "automatic"
        store: Backing store, required when store_mode is "server"
        exclude: Input ids never bookmarked
    """

    def __init__(
        self,
        input_defaults: Mapping[str, Any],
        *,
        store_mode: str = "url",
        policy: str = "explicit",
        store: Optional[BookmarkStore] = None,
        exclude: Iterable[str] = (),
    ):
        self.input_defaults = dict(input_defaults)
        self.store_mode = store_mode
        self.policy = policy
        self.store = store
        self.exclude = list(exclude)
        self._sessions: Dict[str, BookmarkSession] = {}

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def _build_trigger(self, session: BookmarkSession) -> ReplayTrigger:
        serializer = StateSerializer(mode=self.store_mode, store=self.store, exclude=self.exclude)
        return create_trigger(
            self.policy,
            serializer,
            session.inputs,
            update_location=session.set_location,
        )

    def open_session(self, query: Optional[str] = None) -> BookmarkSession:
        """Open a session, replaying the bookmark in ``query`` if any.

        Never raises for a bad or missing bookmark: the session starts with
        declared defaults and the problem is listed in its warnings.
        """
        session_id = str(uuid.uuid4())
        session = BookmarkSession(session_id, DeclaredInputs(self.input_defaults), self.store_mode)

        if self.store_mode != "disable":
            trigger = self._build_trigger(session)
            session.attach_trigger(trigger)
            session.restore_result = trigger.restore_from_query(query)
            if session.restore_result.restored:
                session.location = session.restore_result.record.query
        elif self._carries_bookmark(query):
            message = "Bookmarking is disabled; ignoring bookmark in URL"
            logger.warning(message)
            session.restore_result.warnings.append(message)

        self._sessions[session_id] = session
        logger.info(
            f"Opened session {session_id[:8]} "
            f"(store={self.store_mode}, policy={session.policy}, restored={session.restore_result.restored})"
        )
        return session

    @staticmethod
    def _carries_bookmark(query: Optional[str]) -> bool:
        try:
            return BookmarkRecord.from_query(query) is not None
        except ParseError:
            return True

    def get_session(self, session_id: str) -> Optional[BookmarkSession]:
        return self._sessions.get(session_id)

    def close_session(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        logger.info(f"Closed session {session_id[:8]}")
        return True

    def close_all(self) -> int:
        count = len(self._sessions)
        self._sessions.clear()
        return count
