"""Read/write access to the host's reactive input values.

The bookmarking layer never owns the input registry; hosts pass one in.
DeclaredInputs is the registry used by the bundled HTTP host and by tests.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Dict, List, Mapping, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Called with (input_id, new_value) after a user-driven change
ChangeListener = Callable[[str, Any], None]


@runtime_checkable
class InputRegistry(Protocol):
    """What the replay trigger needs from the host's input registry."""

    def input_ids(self) -> List[str]:
        """Return the declared input ids, in declaration order."""
        ...

    def get_value(self, input_id: str) -> Any:
        """Return the current value of an input."""
        ...

    def seed(self, input_id: str, value: Any) -> None:
        """Set an initial value without signalling a user change."""
        ...


class DeclaredInputs:
    """A fixed set of inputs with declared defaults and current values.

    Args:
        defaults: Input id -> declared default value
    """

    def __init__(self, defaults: Mapping[str, Any]):
        self._defaults: Dict[str, Any] = copy.deepcopy(dict(defaults))
        self._values: Dict[str, Any] = copy.deepcopy(self._defaults)
        self._listeners: List[ChangeListener] = []

    def __contains__(self, input_id: object) -> bool:
        return input_id in self._defaults

    def input_ids(self) -> List[str]:
        return list(self._defaults)

    @property
    def defaults(self) -> Dict[str, Any]:
        return copy.deepcopy(self._defaults)

    def _require(self, input_id: str) -> None:
        if input_id not in self._defaults:
            raise KeyError(f"Unknown input: {input_id}")

    def get_value(self, input_id: str) -> Any:
        self._require(input_id)
        return self._values[input_id]

    def values(self) -> Dict[str, Any]:
        """Return a copy of all current values in declaration order."""
        return copy.deepcopy(self._values)

    def seed(self, input_id: str, value: Any) -> None:
        self._require(input_id)
        self._values[input_id] = copy.deepcopy(value)

    def set_value(self, input_id: str, value: Any) -> bool:
        """Apply a user change and notify listeners.

        Returns:
            True if the value changed, False if it was already equal
        """
        self._require(input_id)
        if self._values[input_id] == value and type(self._values[input_id]) is type(value):
            return False
        self._values[input_id] = copy.deepcopy(value)
        for listener in list(self._listeners):
            listener(input_id, value)
        return True

    def add_listener(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a change listener. Returns a callable that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def reset(self) -> None:
        """Put every input back to its declared default without notifying."""
        self._values = copy.deepcopy(self._defaults)
        logger.debug("Inputs reset to declared defaults")
