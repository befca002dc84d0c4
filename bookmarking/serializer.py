"""StateSerializer: InputSnapshot <-> BookmarkRecord.

In URL mode the snapshot is embedded in the query string. In server mode it
is written to a BookmarkStore and only the state id travels in the URL.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional, Union

from bookmarking.errors import ParseError, StorageUnavailable
from bookmarking.records import (
    BookmarkMode,
    BookmarkRecord,
    decode_inline_query,
    encode_inline_query,
)
from bookmarking.storage import BookmarkStore
from bookmarking.values import from_tagged, from_url_text, to_tagged, to_url_text

logger = logging.getLogger(__name__)


@dataclass
class InputSnapshot:
    """Input values at one point in time.

    Attributes:
        inputs: Input id -> value for every captured input
        values: Extra state contributed by bookmark hooks, keyed by name
    """

    inputs: Dict[str, Any] = field(default_factory=dict)
    values: Dict[str, Any] = field(default_factory=dict)

    def without(self, exclude: Iterable[str]) -> "InputSnapshot":
        """Return a copy with the given input ids dropped."""
        excluded = set(exclude)
        return InputSnapshot(
            inputs={key: value for key, value in self.inputs.items() if key not in excluded},
            values=dict(self.values),
        )


class StateSerializer:
    """Converts snapshots to bookmark records and back.

    Args:
        mode: Where captured snapshots go (URL query or server store)
        store: Backing store, required for server mode
        exclude: Input ids omitted from every capture
    """

    def __init__(
        self,
        mode: Union[BookmarkMode, str] = BookmarkMode.URL,
        store: Optional[BookmarkStore] = None,
        exclude: Iterable[str] = (),
    ):
        self.mode = BookmarkMode(mode)
        if self.mode is BookmarkMode.SERVER and store is None:
            raise ValueError("server mode bookmarks require a store")
        self.store = store
        self._exclude: FrozenSet[str] = frozenset(exclude)

    @property
    def exclude(self) -> FrozenSet[str]:
        return self._exclude

    def set_exclude(self, input_ids: Iterable[str]) -> None:
        """Replace the set of input ids omitted from captures."""
        self._exclude = frozenset(input_ids)
        logger.debug("Bookmark exclusions set to %s", sorted(self._exclude))

    def capture(self, snapshot: InputSnapshot) -> BookmarkRecord:
        """Persist a snapshot and return the record that addresses it.

        Raises:
            UnsupportedValueError: If a value cannot be represented in this mode
            StorageUnavailable: If a server-mode write fails
        """
        snapshot = snapshot.without(self._exclude)
        if self.mode is BookmarkMode.URL:
            record = self._capture_url(snapshot)
        else:
            record = self._capture_server(snapshot)
        logger.info(f"Captured {self.mode.value} bookmark with {len(snapshot.inputs)} inputs")
        return record

    def _capture_url(self, snapshot: InputSnapshot) -> BookmarkRecord:
        inputs = {key: to_url_text(value, key) for key, value in snapshot.inputs.items()}
        values = {key: to_url_text(value, key) for key, value in snapshot.values.items()}
        return BookmarkRecord.inline(encode_inline_query(inputs, values))

    def _capture_server(self, snapshot: InputSnapshot) -> BookmarkRecord:
        document = {
            "inputs": {key: to_tagged(value, key) for key, value in snapshot.inputs.items()},
            "values": {key: to_tagged(value, key) for key, value in snapshot.values.items()},
        }
        state_id = self.store.save(document)
        return BookmarkRecord.reference(state_id)

    def restore(self, record: BookmarkRecord) -> InputSnapshot:
        """Recover the snapshot a record addresses.

        Raises:
            ParseError: If the record or stored document cannot be decoded
            NotFoundError: If the referenced state id is unknown
            StorageUnavailable: If the store cannot be reached
        """
        if record.mode is BookmarkMode.URL:
            snapshot = self._restore_url(record)
        else:
            snapshot = self._restore_server(record)
        logger.info(f"Restored {record.mode.value} bookmark with {len(snapshot.inputs)} inputs")
        return snapshot

    def restore_query(self, query: Optional[str]) -> Optional[InputSnapshot]:
        """Restore from a raw query string; None if it carries no bookmark."""
        record = BookmarkRecord.from_query(query)
        if record is None:
            return None
        return self.restore(record)

    def _restore_url(self, record: BookmarkRecord) -> InputSnapshot:
        raw_inputs, raw_values = decode_inline_query(record.query)
        return InputSnapshot(
            inputs={key: from_url_text(text, key) for key, text in raw_inputs.items()},
            values={key: from_url_text(text, key) for key, text in raw_values.items()},
        )

    def _restore_server(self, record: BookmarkRecord) -> InputSnapshot:
        if self.store is None:
            raise StorageUnavailable(record.state_id, "no bookmark store is configured")
        document = self.store.load(record.state_id)
        inputs = document.get("inputs", {})
        values = document.get("values", {})
        if not isinstance(inputs, dict) or not isinstance(values, dict):
            raise ParseError(f"Stored bookmark {record.state_id} has a malformed layout")
        return InputSnapshot(
            inputs={key: from_tagged(data, key) for key, data in inputs.items()},
            values={key: from_tagged(data, key) for key, data in values.items()},
        )
