"""Durable storage for server-mode bookmarks.

Each stored bookmark is a JSON document keyed by a freshly generated state id.
The file store keeps one directory per bookmark:

    <root>/<state_id>/input.json

Directories are created exclusively, so two concurrent captures can never
end up sharing an id. Nothing here expires records; deleting them is left to
whoever operates the store.

Schema Versioning:
    - Version 1.0: inputs/values in tagged form, stamped with saved_at
"""

from __future__ import annotations

import copy
import json
import logging
import secrets
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union, runtime_checkable

from bookmarking.errors import NotFoundError, ParseError, StorageUnavailable
from bookmarking.records import STATE_ID_LENGTH, STATE_ID_PATTERN, validate_state_id

logger = logging.getLogger(__name__)

RECORD_SCHEMA_VERSION = "1.0"

DEFAULT_MAX_ID_ATTEMPTS = 8


def generate_state_id() -> str:
    """Return an unguessable state id of STATE_ID_LENGTH lowercase hex chars."""
    return secrets.token_hex(STATE_ID_LENGTH // 2)


def validate_record_version(version: Optional[str]) -> None:
    """Reject stored documents written under another schema version.

    Raises:
        ParseError: If the version is missing or does not match RECORD_SCHEMA_VERSION
    """
    if version is None:
        raise ParseError("Stored bookmark is missing its schema_version")
    if version != RECORD_SCHEMA_VERSION:
        raise ParseError(
            f"Stored bookmark schema {version} is incompatible (expected {RECORD_SCHEMA_VERSION})"
        )


def _stamp(document: Dict[str, Any]) -> Dict[str, Any]:
    stamped = copy.deepcopy(document)
    stamped["schema_version"] = RECORD_SCHEMA_VERSION
    stamped["saved_at"] = datetime.now(timezone.utc).isoformat()
    return stamped


@runtime_checkable
class BookmarkStore(Protocol):
    """Persistence boundary for server-mode bookmarks."""

    def save(self, document: Dict[str, Any]) -> str:
        """Persist a document under a new state id and return the id.

        Raises:
            StorageUnavailable: If the document could not be written
        """
        ...

    def load(self, state_id: str) -> Dict[str, Any]:
        """Return the document stored under ``state_id``.

        Raises:
            NotFoundError: If no document exists for the id
            StorageUnavailable: If the store cannot be reached
            ParseError: If the id is malformed or the document is corrupt
        """
        ...

    def delete(self, state_id: str) -> bool:
        """Remove a stored document. Returns False if it did not exist."""
        ...

    def list_ids(self) -> List[str]:
        """Return the ids of all stored documents."""
        ...


class FileBookmarkStore:
    """Bookmark store backed by a directory on the local file system."""

    FILENAME = "input.json"

    def __init__(self, root: Union[str, Path], max_id_attempts: int = DEFAULT_MAX_ID_ATTEMPTS):
        self.root = Path(root)
        self.max_id_attempts = max_id_attempts

    def __repr__(self) -> str:
        return f"FileBookmarkStore(root={str(self.root)!r})"

    def _allocate_directory(self) -> Tuple[str, Path]:
        for _ in range(self.max_id_attempts):
            state_id = generate_state_id()
            state_dir = self.root / state_id
            try:
                state_dir.mkdir()
            except FileExistsError:
                logger.debug("State id %s already taken, drawing another", state_id)
                continue
            except OSError as e:
                raise StorageUnavailable(state_id, str(e)) from e
            return state_id, state_dir
        raise StorageUnavailable("", f"no free state id after {self.max_id_attempts} attempts")

    def save(self, document: Dict[str, Any]) -> str:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailable("", f"cannot create store root {self.root}: {e}") from e

        state_id, state_dir = self._allocate_directory()
        stamped = _stamp(document)
        try:
            with open(state_dir / self.FILENAME, "w", encoding="utf-8") as f:
                json.dump(stamped, f, indent=2)
        except OSError as e:
            shutil.rmtree(state_dir, ignore_errors=True)
            raise StorageUnavailable(state_id, str(e)) from e

        logger.info(
            f"Saved bookmark {state_id} ({len(stamped.get('inputs', {}))} inputs) to {state_dir}"
        )
        return state_id

    def load(self, state_id: str) -> Dict[str, Any]:
        validate_state_id(state_id)
        if not self.root.is_dir():
            raise StorageUnavailable(state_id, f"store root {self.root} is not a directory")

        path = self.root / state_id / self.FILENAME
        try:
            with open(path, encoding="utf-8") as f:
                document = json.load(f)
        except FileNotFoundError as e:
            raise NotFoundError(state_id) from e
        except json.JSONDecodeError as e:
            raise ParseError(f"Stored bookmark {state_id} is corrupt: {e.msg}") from e
        except (ValueError, RecursionError) as e:
            raise ParseError(f"Stored bookmark {state_id} is corrupt: {e}") from e
        except OSError as e:
            raise StorageUnavailable(state_id, str(e)) from e

        if not isinstance(document, dict):
            raise ParseError(f"Stored bookmark {state_id} is not a JSON object")
        validate_record_version(document.get("schema_version"))
        logger.debug(f"Loaded bookmark {state_id} from {path}")
        return document

    def delete(self, state_id: str) -> bool:
        validate_state_id(state_id)
        state_dir = self.root / state_id
        if not state_dir.is_dir():
            logger.info(f"No stored bookmark {state_id} to delete")
            return False
        try:
            shutil.rmtree(state_dir)
        except OSError as e:
            raise StorageUnavailable(state_id, str(e)) from e
        logger.info(f"Deleted stored bookmark {state_id}")
        return True

    def list_ids(self) -> List[str]:
        if not self.root.is_dir():
            return []
        try:
            return sorted(
                entry.name
                for entry in self.root.iterdir()
                if entry.is_dir() and STATE_ID_PATTERN.match(entry.name)
            )
        except OSError as e:
            raise StorageUnavailable("", str(e)) from e


class InMemoryBookmarkStore:
    """Process-local bookmark store. Contents are lost on restart."""

    def __init__(self, max_id_attempts: int = DEFAULT_MAX_ID_ATTEMPTS):
        self._documents: Dict[str, Dict[str, Any]] = {}
        self.max_id_attempts = max_id_attempts

    def save(self, document: Dict[str, Any]) -> str:
        for _ in range(self.max_id_attempts):
            state_id = generate_state_id()
            if state_id not in self._documents:
                self._documents[state_id] = _stamp(document)
                logger.info(f"Saved bookmark {state_id} in memory")
                return state_id
        raise StorageUnavailable("", f"no free state id after {self.max_id_attempts} attempts")

    def load(self, state_id: str) -> Dict[str, Any]:
        validate_state_id(state_id)
        try:
            document = self._documents[state_id]
        except KeyError as e:
            raise NotFoundError(state_id) from e
        return copy.deepcopy(document)

    def delete(self, state_id: str) -> bool:
        validate_state_id(state_id)
        return self._documents.pop(state_id, None) is not None

    def list_ids(self) -> List[str]:
        return sorted(self._documents)
