"""Bookmark records and their query-string formats.

Two record shapes share the query string as their addressable form:

    ?_inputs_&damping=1&delta=1&length=100&omega=1[&_values_&key=value]
    ?_state_id_=d80625dc681e913a

The first embeds the snapshot inline; the second references a record kept
in a BookmarkStore.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote, unquote_plus

from bookmarking.errors import ParseError

INPUTS_MARKER = "_inputs_"
VALUES_MARKER = "_values_"
STATE_ID_MARKER = "_state_id_"

STATE_ID_LENGTH = 16
STATE_ID_PATTERN = re.compile(r"^[0-9a-f]{%d}$" % STATE_ID_LENGTH)


class BookmarkMode(str, Enum):
    """Where a bookmark keeps its snapshot."""

    URL = "url"
    SERVER = "server"


def validate_state_id(state_id: str) -> str:
    """Return the state id unchanged, or raise ParseError if it is malformed."""
    if not STATE_ID_PATTERN.match(state_id or ""):
        raise ParseError(f"Malformed bookmark state id: {state_id!r}")
    return state_id


def _is_reference(token: str) -> bool:
    return token == STATE_ID_MARKER or token.startswith(STATE_ID_MARKER + "=")


def _is_marker(token: str) -> bool:
    return token in (INPUTS_MARKER, VALUES_MARKER) or _is_reference(token)


@dataclass(frozen=True)
class BookmarkRecord:
    """An immutable bookmark, addressable through its query string."""

    mode: BookmarkMode
    query: str
    state_id: Optional[str] = None

    @classmethod
    def reference(cls, state_id: str) -> "BookmarkRecord":
        validate_state_id(state_id)
        return cls(
            mode=BookmarkMode.SERVER,
            query=f"?{STATE_ID_MARKER}={state_id}",
            state_id=state_id,
        )

    @classmethod
    def inline(cls, query: str) -> "BookmarkRecord":
        if not query.startswith("?"):
            query = "?" + query
        return cls(mode=BookmarkMode.URL, query=query)

    @classmethod
    def from_query(cls, query: Optional[str]) -> Optional["BookmarkRecord"]:
        """Classify an incoming query string.

        Args:
            query: Raw query string, with or without the leading ``?``

        Returns:
            A BookmarkRecord, or None if the query carries no bookmark marker

        Raises:
            ParseError: If a marker is present but the query is malformed
        """
        body = (query or "").lstrip("?")
        if not body:
            return None

        tokens = body.split("&")
        first = next((token for token in tokens if _is_marker(token)), None)
        if first is None:
            return None
        if not _is_reference(first):
            # Once inline, a "_state_id_=..." token is an ordinary input id
            return cls.inline(body)

        rest = tokens[tokens.index(first) + 1:]
        if any(token in (INPUTS_MARKER, VALUES_MARKER) for token in rest):
            raise ParseError("Query mixes inline inputs with a state id reference")
        if any(_is_reference(token) for token in rest):
            raise ParseError("Query carries more than one state id")
        _, _, state_id = first.partition("=")
        return cls.reference(unquote_plus(state_id))

    def __str__(self) -> str:
        return self.query


def encode_inline_query(inputs: Dict[str, str], values: Optional[Dict[str, str]] = None) -> str:
    """Build an inline query string from pre-serialized value texts.

    Keys are emitted in sorted order so equal snapshots give equal URLs.
    The values section is omitted when empty.
    """
    parts: List[str] = [INPUTS_MARKER]
    parts.extend(f"{quote(key, safe='')}={quote(inputs[key], safe='')}" for key in sorted(inputs))
    if values:
        parts.append(VALUES_MARKER)
        parts.extend(f"{quote(key, safe='')}={quote(values[key], safe='')}" for key in sorted(values))
    return "?" + "&".join(parts)


def decode_inline_query(query: str) -> Tuple[Dict[str, str], Dict[str, str]]:
    """Split an inline query string into (inputs, values) text mappings.

    Raises:
        ParseError: On stray tokens, empty or duplicate keys, or repeated markers
    """
    body = query.lstrip("?")
    sections: Dict[str, Dict[str, str]] = {}
    current: Optional[Dict[str, str]] = None

    for token in body.split("&"):
        if not token:
            continue
        if token in (INPUTS_MARKER, VALUES_MARKER):
            if token in sections:
                raise ParseError(f"Marker {token} appears more than once")
            current = sections[token] = {}
            continue
        if current is None:
            raise ParseError(f"Unexpected token before bookmark marker: {token!r}")
        raw_key, sep, raw_value = token.partition("=")
        if not sep:
            raise ParseError(f"Missing '=' in query token {token!r}")
        key = unquote_plus(raw_key)
        if not key:
            raise ParseError(f"Empty input id in query token {token!r}")
        if key in current:
            raise ParseError(f"Duplicate input id {key!r}")
        current[key] = unquote_plus(raw_value)

    if not sections:
        raise ParseError("Query does not contain an inline bookmark")
    return sections.get(INPUTS_MARKER, {}), sections.get(VALUES_MARKER, {})
