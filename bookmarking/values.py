"""Input value kinds and their serializers.

Every input value belongs to exactly one ValueKind. Each kind has an explicit
pair of serializers for the tagged form used by stored records, and the
URL-safe kinds additionally share a canonical text form (compact JSON) used
inside query strings.

Kinds:
    null, bool, int, float, str, list, dict  -> URL-safe
    bytes, date, datetime                    -> storage only
"""

from __future__ import annotations

import base64
import binascii
import json
import math
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict

from bookmarking.errors import ParseError, UnsupportedValueError


class ValueKind(str, Enum):
    """Tag for the supported input value kinds."""

    NULL = "null"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    STR = "str"
    LIST = "list"
    DICT = "dict"
    BYTES = "bytes"
    DATE = "date"
    DATETIME = "datetime"


URL_SAFE_KINDS = frozenset(
    {
        ValueKind.NULL,
        ValueKind.BOOL,
        ValueKind.INT,
        ValueKind.FLOAT,
        ValueKind.STR,
        ValueKind.LIST,
        ValueKind.DICT,
    }
)


def kind_of(value: Any, where: str = "") -> ValueKind:
    """Classify a Python value into its ValueKind.

    Args:
        value: The input value
        where: Input id (or nested path) used in error messages

    Returns:
        The matching ValueKind

    Raises:
        UnsupportedValueError: If the value has no supported kind
    """
    if value is None:
        return ValueKind.NULL
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, int):
        return ValueKind.INT
    if isinstance(value, float):
        return ValueKind.FLOAT
    if isinstance(value, str):
        return ValueKind.STR
    if isinstance(value, list):
        return ValueKind.LIST
    if isinstance(value, dict):
        for key in value:
            if not isinstance(key, str):
                raise UnsupportedValueError(where, f"dict keys must be strings, got {type(key).__name__}")
        return ValueKind.DICT
    if isinstance(value, (bytes, bytearray)):
        return ValueKind.BYTES
    # datetime before date: datetime is a date subclass
    if isinstance(value, datetime):
        return ValueKind.DATETIME
    if isinstance(value, date):
        return ValueKind.DATE
    raise UnsupportedValueError(where, f"unsupported value type {type(value).__name__}")


# ---------------------------------------------------------------------------
# URL text form
# ---------------------------------------------------------------------------


def _check_url_safe(value: Any, where: str) -> None:
    kind = kind_of(value, where)
    if kind not in URL_SAFE_KINDS:
        raise UnsupportedValueError(
            where, f"{kind.value} values cannot be stored in a URL; use the server store"
        )
    if kind is ValueKind.FLOAT and not math.isfinite(value):
        raise UnsupportedValueError(where, f"non-finite float {value!r} cannot be stored in a URL")
    if kind is ValueKind.LIST:
        for index, item in enumerate(value):
            _check_url_safe(item, f"{where}[{index}]")
    elif kind is ValueKind.DICT:
        for key, item in value.items():
            _check_url_safe(item, f"{where}.{key}")


def is_url_safe(value: Any) -> bool:
    """Return True if the value can be embedded in a query string."""
    try:
        _check_url_safe(value, "")
    except UnsupportedValueError:
        return False
    return True


def to_url_text(value: Any, where: str = "") -> str:
    """Serialize a URL-safe value to its canonical text form.

    Raises:
        UnsupportedValueError: If the value (or anything nested in it) is not URL-safe
    """
    _check_url_safe(value, where)
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def _reject_constant(name: str) -> Any:
    raise ParseError(f"non-finite number {name} is not allowed")


def from_url_text(text: str, where: str = "") -> Any:
    """Parse the canonical text form back into a Python value.

    Raises:
        ParseError: If the text is not valid canonical JSON, or decodes to a
            value that could not have been captured (such as an overflowing float)
    """
    try:
        value = json.loads(text, parse_constant=_reject_constant)
    except ParseError:
        raise
    except json.JSONDecodeError as e:
        raise ParseError(f"Input '{where}': cannot decode value {text!r}: {e.msg}") from e
    except (ValueError, RecursionError) as e:
        # int digit limit, nesting too deep for the decoder
        raise ParseError(f"Input '{where}': cannot decode value: {e}") from e

    try:
        _check_url_safe(value, where)
    except UnsupportedValueError as e:
        raise ParseError(f"Input '{where}': decoded value is not allowed: {e.detail}") from e
    except RecursionError as e:
        raise ParseError(f"Input '{where}': value is nested too deeply") from e
    return value


# ---------------------------------------------------------------------------
# Tagged form (stored records)
# ---------------------------------------------------------------------------


def _encode_list(value: list, where: str) -> list:
    return [to_tagged(item, f"{where}[{index}]") for index, item in enumerate(value)]


def _encode_dict(value: dict, where: str) -> dict:
    return {key: to_tagged(item, f"{where}.{key}") for key, item in value.items()}


_ENCODERS: Dict[ValueKind, Callable[[Any, str], Any]] = {
    ValueKind.NULL: lambda value, where: None,
    ValueKind.BOOL: lambda value, where: value,
    ValueKind.INT: lambda value, where: value,
    ValueKind.FLOAT: lambda value, where: value,
    ValueKind.STR: lambda value, where: value,
    ValueKind.LIST: _encode_list,
    ValueKind.DICT: _encode_dict,
    ValueKind.BYTES: lambda value, where: base64.b64encode(bytes(value)).decode("ascii"),
    ValueKind.DATE: lambda value, where: value.isoformat(),
    ValueKind.DATETIME: lambda value, where: value.isoformat(),
}


def _expect(value: Any, types: tuple, kind: ValueKind, where: str) -> Any:
    # bool is rejected for numeric kinds so a tampered record cannot change type
    if not isinstance(value, types) or (kind is not ValueKind.BOOL and isinstance(value, bool)):
        raise ParseError(f"Input '{where}': expected {kind.value}, got {type(value).__name__}")
    return value


def _decode_list(value: Any, where: str) -> list:
    _expect(value, (list,), ValueKind.LIST, where)
    return [from_tagged(item, f"{where}[{index}]") for index, item in enumerate(value)]


def _decode_dict(value: Any, where: str) -> dict:
    _expect(value, (dict,), ValueKind.DICT, where)
    return {key: from_tagged(item, f"{where}.{key}") for key, item in value.items()}


def _decode_bytes(value: Any, where: str) -> bytes:
    _expect(value, (str,), ValueKind.BYTES, where)
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ParseError(f"Input '{where}': invalid base64 payload") from e


def _decode_iso(parser: Callable[[str], Any], kind: ValueKind) -> Callable[[Any, str], Any]:
    def decode(value: Any, where: str) -> Any:
        _expect(value, (str,), kind, where)
        try:
            return parser(value)
        except ValueError as e:
            raise ParseError(f"Input '{where}': invalid {kind.value} {value!r}") from e

    return decode


def _decode_float(value: Any, where: str) -> float:
    # JSON writers may drop the fraction of integral floats
    return float(_expect(value, (int, float), ValueKind.FLOAT, where))


_DECODERS: Dict[ValueKind, Callable[[Any, str], Any]] = {
    ValueKind.NULL: lambda value, where: None,
    ValueKind.BOOL: lambda value, where: _expect(value, (bool,), ValueKind.BOOL, where),
    ValueKind.INT: lambda value, where: _expect(value, (int,), ValueKind.INT, where),
    ValueKind.FLOAT: _decode_float,
    ValueKind.STR: lambda value, where: _expect(value, (str,), ValueKind.STR, where),
    ValueKind.LIST: _decode_list,
    ValueKind.DICT: _decode_dict,
    ValueKind.BYTES: _decode_bytes,
    ValueKind.DATE: _decode_iso(date.fromisoformat, ValueKind.DATE),
    ValueKind.DATETIME: _decode_iso(datetime.fromisoformat, ValueKind.DATETIME),
}


def to_tagged(value: Any, where: str = "") -> Dict[str, Any]:
    """Encode a value as ``{"kind": ..., "value": ...}`` for JSON storage."""
    kind = kind_of(value, where)
    return {"kind": kind.value, "value": _ENCODERS[kind](value, where)}


def from_tagged(data: Any, where: str = "") -> Any:
    """Decode a tagged value produced by :func:`to_tagged`.

    Raises:
        ParseError: If the tag is unknown or the payload does not match it
    """
    if not isinstance(data, dict) or "kind" not in data:
        raise ParseError(f"Input '{where}': stored value is missing its kind tag")
    try:
        kind = ValueKind(data["kind"])
    except ValueError as e:
        raise ParseError(f"Input '{where}': unknown value kind {data['kind']!r}") from e
    return _DECODERS[kind](data.get("value"), where)
