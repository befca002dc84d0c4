"""ReplayTrigger: when to capture bookmarks, and how to replay them on load.

Two interchangeable policies:

    explicit   capture only when the user asks (bookmark button)
    automatic  capture once per update cycle after any non-excluded input
               changed, then push the new query string to the address bar

On startup, restore_from_query() seeds restored values into the input
registry before the host's reactive engine runs its first pass. Restore
failures never propagate: the inputs keep their declared defaults and the
failure is reported as a warning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Type, Union

from bookmarking.errors import BookmarkError
from bookmarking.records import BookmarkRecord
from bookmarking.registry import InputRegistry
from bookmarking.serializer import InputSnapshot, StateSerializer

logger = logging.getLogger(__name__)


class BookmarkPolicy(str, Enum):
    """When captures happen."""

    EXPLICIT = "explicit"
    AUTOMATIC = "automatic"


@dataclass
class BookmarkState:
    """State handed to bookmark and restore hooks.

    Hooks read ``inputs`` and read or write ``values``, the place for state
    that does not live in an ordinary input.
    """

    inputs: Dict[str, Any] = field(default_factory=dict)
    values: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RestoreResult:
    """Outcome of replaying a bookmark at startup."""

    record: Optional[BookmarkRecord] = None
    restored: bool = False
    applied: List[str] = field(default_factory=list)
    ignored: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


StateHook = Callable[[BookmarkState], None]
BookmarkedHook = Callable[[BookmarkRecord], None]
LocationUpdater = Callable[[str], None]


class ReplayTrigger:
    """Explicit policy: captures only happen through bookmark().

    Args:
        serializer: Converts snapshots to records and back
        registry: The host's input registry
        update_location: Called with the new query string after automatic captures
        exclude: Input ids never captured nor restored
    """

    policy = BookmarkPolicy.EXPLICIT

    def __init__(
        self,
        serializer: StateSerializer,
        registry: InputRegistry,
        *,
        update_location: Optional[LocationUpdater] = None,
        exclude: Optional[Iterable[str]] = None,
    ):
        self.serializer = serializer
        self.registry = registry
        self._update_location = update_location
        if exclude is not None:
            serializer.set_exclude(exclude)

        self._bookmark_hooks: List[StateHook] = []
        self._bookmarked_hooks: List[BookmarkedHook] = []
        self._restore_hooks: List[StateHook] = []
        self._restored_hooks: List[StateHook] = []

        self.last_record: Optional[BookmarkRecord] = None

    @property
    def exclude(self) -> FrozenSet[str]:
        return self.serializer.exclude

    def set_exclude(self, input_ids: Iterable[str]) -> None:
        self.serializer.set_exclude(input_ids)

    # Hook registration. Each returns the hook so it can be used as a decorator.

    def on_bookmark(self, hook: StateHook) -> StateHook:
        self._bookmark_hooks.append(hook)
        return hook

    def on_bookmarked(self, hook: BookmarkedHook) -> BookmarkedHook:
        self._bookmarked_hooks.append(hook)
        return hook

    def on_restore(self, hook: StateHook) -> StateHook:
        self._restore_hooks.append(hook)
        return hook

    def on_restored(self, hook: StateHook) -> StateHook:
        self._restored_hooks.append(hook)
        return hook

    # Capture

    def _current_snapshot(self) -> InputSnapshot:
        excluded = self.exclude
        inputs = {
            input_id: self.registry.get_value(input_id)
            for input_id in self.registry.input_ids()
            if input_id not in excluded
        }
        state = BookmarkState(inputs=dict(inputs))
        for hook in self._bookmark_hooks:
            hook(state)
        return InputSnapshot(inputs=inputs, values=state.values)

    def bookmark(self) -> BookmarkRecord:
        """Capture the current inputs now.

        Raises:
            BookmarkError: If the capture fails; the bookmark action has failed
        """
        snapshot = self._current_snapshot()
        try:
            record = self.serializer.capture(snapshot)
        except BookmarkError as e:
            logger.error(f"Bookmark capture failed: {e}")
            raise

        self.last_record = record
        for hook in self._bookmarked_hooks:
            hook(record)
        return record

    def input_changed(self, input_id: str) -> None:
        """Observe a user change. The explicit policy ignores it."""

    def flush(self) -> Optional[BookmarkRecord]:
        """End of an update cycle. The explicit policy has nothing to do."""
        return None

    # Restore

    def _warn(self, result: RestoreResult, message: str) -> RestoreResult:
        logger.warning(message)
        result.warnings.append(message)
        return result

    def _run_hooks(self, hooks: List[StateHook], state: BookmarkState, result: RestoreResult) -> None:
        for hook in hooks:
            try:
                hook(state)
            except Exception as e:
                logger.exception("Restore hook %r failed", hook)
                result.warnings.append(f"Restore hook failed: {e}")

    def restore_from_query(self, query: Optional[str]) -> RestoreResult:
        """Replay the bookmark carried by an incoming request, if any.

        Args:
            query: The request's raw query string

        Returns:
            RestoreResult listing applied and ignored ids plus any warnings
        """
        result = RestoreResult()
        try:
            record = BookmarkRecord.from_query(query)
            if record is None:
                return result
            result.record = record
            snapshot = self.serializer.restore(record)
        except BookmarkError as e:
            return self._warn(result, f"Could not restore bookmark, using defaults: {e}")

        state = BookmarkState(inputs=dict(snapshot.inputs), values=dict(snapshot.values))
        self._run_hooks(self._restore_hooks, state, result)

        known = set(self.registry.input_ids())
        excluded = self.exclude
        for input_id, value in state.inputs.items():
            if input_id not in known or input_id in excluded:
                result.ignored.append(input_id)
                continue
            self.registry.seed(input_id, value)
            result.applied.append(input_id)

        if result.ignored:
            logger.info(f"Ignored bookmarked inputs not in this UI: {result.ignored}")

        self._run_hooks(self._restored_hooks, state, result)
        self.last_record = record
        result.restored = True
        logger.info(f"Replayed {len(result.applied)} inputs from {record.mode.value} bookmark")
        return result


class ExplicitTrigger(ReplayTrigger):
    """Capture only on a user-initiated bookmark action."""


class AutomaticTrigger(ReplayTrigger):
    """Capture after every update cycle in which a bookmarked input changed."""

    policy = BookmarkPolicy.AUTOMATIC

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._pending = False

    @property
    def pending(self) -> bool:
        return self._pending

    def input_changed(self, input_id: str) -> None:
        if input_id in self.exclude:
            logger.debug("Change to excluded input %s does not trigger a bookmark", input_id)
            return
        self._pending = True

    def flush(self) -> Optional[BookmarkRecord]:
        """Capture once if anything changed since the last flush.

        A failed capture leaves the changes pending, so the next flush
        retries even if nothing else changed.

        Raises:
            BookmarkError: If the capture fails
        """
        if not self._pending:
            return None
        record = self.bookmark()
        self._pending = False
        if self._update_location is not None:
            self._update_location(record.query)
        return record


_TRIGGERS: Dict[BookmarkPolicy, Type[ReplayTrigger]] = {
    BookmarkPolicy.EXPLICIT: ExplicitTrigger,
    BookmarkPolicy.AUTOMATIC: AutomaticTrigger,
}


def create_trigger(
    policy: Union[BookmarkPolicy, str],
    serializer: StateSerializer,
    registry: InputRegistry,
    **kwargs: Any,
) -> ReplayTrigger:
    """Build the trigger for a configured policy.

    Raises:
        ValueError: If the policy name is unknown
    """
    trigger_cls = _TRIGGERS[BookmarkPolicy(policy)]
    return trigger_cls(serializer, registry, **kwargs)
