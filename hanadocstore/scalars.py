"""Scalar value codecs for the FJSON storage format."""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Union

Data = Union[bytes, bytearray, memoryview, str]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_WHITESPACE = re.compile(r"[ \t\n\r]*")
_HEX = re.compile(r"[0-9a-fA-F]*")
_NEGATIVE_EXPONENT = re.compile(r"e-0(\d)$")
_ESCAPE_RE = re.compile('["\\\\\x00-\x1f<>&\u2028\u2029\ud800-\udfff]')
_SHORT_ESCAPES = {'"': '\\"', "\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t"}


class FJSONError(ValueError):
    """Raised when FJSON data cannot be decoded or a value cannot be encoded."""


@dataclass(frozen=True)
class ObjectID:
    """A 12-byte BSON ObjectID."""

    value: bytes = bytes(12)

    def __post_init__(self) -> None:
        raw = bytes(self.value)
        if len(raw) != 12:
            raise ValueError(f"ObjectID must be 12 bytes, got {len(raw)}")
        object.__setattr__(self, "value", raw)

    def hex(self) -> str:
        """Return the ObjectID as a 24-character lower-case hex string."""
        return self.value.hex()

    def __str__(self) -> str:
        return self.hex()


@dataclass(frozen=True)
class Regex:
    """A BSON regular expression: pattern and option letters."""

    pattern: str = ""
    options: str = ""


def _reject_constant(name: str) -> Any:
    raise FJSONError(f"invalid character {name[0]!r} looking for beginning of value")


_DECODER = json.JSONDecoder(parse_constant=_reject_constant)


def _text(data: Data) -> str:
    if isinstance(data, str):
        return data
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data).decode("utf-8", errors="replace")
    raise TypeError(f"expected bytes or str, got {type(data).__name__}")


def _decode(data: Data, *, strict_tail: bool = True) -> Any:
    """Decode exactly one JSON value.

    With ``strict_tail`` nothing at all may follow the value; otherwise
    only whitespace may.
    """
    text = _text(data)
    if text == "null":
        raise FJSONError("null data")
    start = _WHITESPACE.match(text, 0).end()
    if start == len(text):
        raise FJSONError("EOF" if strict_tail else "unexpected end of JSON input")
    try:
        value, end = _DECODER.raw_decode(text, start)
    except json.JSONDecodeError as exc:
        if exc.pos >= len(text) or exc.msg.startswith("Unterminated string"):
            raise FJSONError("unexpected EOF") from exc
        raise FJSONError(f"invalid JSON at offset {exc.pos}: {exc.msg}") from exc
    rest = text[end:]
    if strict_tail:
        if rest:
            size = len(rest.encode("utf-8", errors="replace"))
            raise FJSONError(f"{size} bytes remains in the decoded: {rest}")
    elif _WHITESPACE.match(rest).end() != len(rest):
        raise FJSONError("invalid character after top-level value")
    return value


def _kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def _decode_fields(data: Data, fields: tuple[str, ...]) -> dict[str, Any]:
    """Decode a JSON object whose keys must all be among ``fields``.

    Keys match case-insensitively; null values are skipped.
    """
    value = _decode(data)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise FJSONError(f"cannot unmarshal {_kind(value)} into object")
    result: dict[str, Any] = {}
    for key, item in value.items():
        name = key if key in fields else next(
            (f for f in fields if f.casefold() == key.casefold()), None
        )
        if name is None:
            raise FJSONError(f'json: unknown field "{key}"')
        if item is not None:
            result[name] = item
    return result


def _as_int(value: Any, bits: int) -> int:
    if type(value) is not int:
        raise FJSONError(f"cannot unmarshal {_kind(value)} into int{bits}")
    low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    if not low <= value <= high:
        raise FJSONError(f"cannot unmarshal number {value} into int{bits}")
    return value


def _as_str(value: Any, field: str) -> str:
    if not isinstance(value, str):
        raise FJSONError(f"cannot unmarshal {_kind(value)} into string field {field!r}")
    return value


def _escape(match: re.Match) -> str:
    ch = match.group()
    if ch in _SHORT_ESCAPES:
        return _SHORT_ESCAPES[ch]
    if "\ud800" <= ch <= "\udfff":
        return "\ufffd"
    return f"\\u{ord(ch):04x}"


def _encode_string(value: str) -> bytes:
    return ('"' + _ESCAPE_RE.sub(_escape, value) + '"').encode("utf-8")


def _format_float(value: float) -> str:
    if math.isnan(value) or math.isinf(value):
        raise FJSONError(f"unsupported value: {value!r}")
    magnitude = abs(value)
    if magnitude != 0 and (magnitude < 1e-6 or magnitude >= 1e21):
        return _NEGATIVE_EXPONENT.sub(r"e-\1", repr(value))
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _check_int(value: Any, bits: int) -> int:
    if type(value) is not int:
        raise TypeError(f"expected int, got {type(value).__name__}")
    low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    if not low <= value <= high:
        raise FJSONError(f"value {value} does not fit in int{bits}")
    return value


def unmarshal_bool(data: Data) -> bool:
    """Decode a JSON boolean."""
    value = _decode(data, strict_tail=False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise FJSONError(f"cannot unmarshal {_kind(value)} into bool")
    return value


def marshal_bool(value: bool) -> bytes:
    """Encode a boolean as JSON."""
    if not isinstance(value, bool):
        raise TypeError(f"expected bool, got {type(value).__name__}")
    return json.dumps(value).encode("ascii")


def unmarshal_string(data: Data) -> str:
    """Decode a JSON string."""
    value = _decode(data, strict_tail=False)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise FJSONError(f"cannot unmarshal {_kind(value)} into string")
    return value


def marshal_string(value: str) -> bytes:
    """Encode a string as JSON, escaping HTML-sensitive characters."""
    if not isinstance(value, str):
        raise TypeError(f"expected str, got {type(value).__name__}")
    return _encode_string(value)


def unmarshal_double(data: Data) -> float:
    """Decode a JSON number as a float."""
    value = _decode(data)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FJSONError(f"cannot unmarshal {_kind(value)} into float64")
    try:
        result = float(value)
    except OverflowError as exc:
        raise FJSONError(f"cannot unmarshal number {value} into float64") from exc
    if math.isinf(result):
        raise FJSONError("cannot unmarshal number out of range into float64")
    return result


def marshal_double(value: float) -> bytes:
    """Encode a finite float as a JSON number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected float, got {type(value).__name__}")
    return _format_float(float(value)).encode("ascii")


def unmarshal_int32(data: Data) -> int:
    """Decode a JSON integer that fits in 32 bits."""
    value = _decode(data)
    return 0 if value is None else _as_int(value, 32)


def marshal_int32(value: int) -> bytes:
    """Encode a 32-bit integer as JSON."""
    return str(_check_int(value, 32)).encode("ascii")


def unmarshal_int64(data: Data) -> int:
    """Decode a JSON integer that fits in 64 bits."""
    value = _decode(data)
    return 0 if value is None else _as_int(value, 64)


def marshal_int64(value: int) -> bytes:
    """Encode a 64-bit integer as JSON."""
    return str(_check_int(value, 64)).encode("ascii")


def unmarshal_datetime(data: Data) -> datetime:
    """Decode ``{"$da": <milliseconds since epoch>}`` into an aware UTC datetime."""
    fields = _decode_fields(data, ("$da",))
    millis = _as_int(fields.get("$da", 0), 64)
    try:
        return _EPOCH + timedelta(milliseconds=millis)
    except OverflowError as exc:
        raise FJSONError(f"datetime {millis} ms is out of range") from exc


def marshal_datetime(value: datetime) -> bytes:
    """Encode a datetime as ``{"$da": <milliseconds>}``; naive values count as UTC."""
    if not isinstance(value, datetime):
        raise TypeError(f"expected datetime, got {type(value).__name__}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    millis = (value - _EPOCH) // timedelta(milliseconds=1)
    return b'{"$da":' + str(millis).encode("ascii") + b"}"


def unmarshal_object_id(data: Data) -> ObjectID:
    """Decode ``{"oid": "<24 hex digits>"}``."""
    fields = _decode_fields(data, ("oid",))
    text = _as_str(fields.get("oid", ""), "oid")
    if not _HEX.fullmatch(text):
        raise FJSONError(f"encoding/hex: invalid byte in {text!r}")
    if len(text) % 2:
        raise FJSONError("encoding/hex: odd length hex string")
    raw = bytes.fromhex(text)
    if len(raw) != 12:
        raise FJSONError(f"fjson.ObjectID.UnmarshalJSON: {len(raw)} bytes")
    return ObjectID(raw)


def marshal_object_id(value: ObjectID) -> bytes:
    """Encode an ObjectID as ``{"oid": "<hex>"}``."""
    return b'{"oid":"' + value.hex().encode("ascii") + b'"}'


def unmarshal_regex(data: Data) -> Regex:
    """Decode ``{"$r": <pattern>, "o": <options>}``."""
    fields = _decode_fields(data, ("$r", "o"))
    return Regex(
        pattern=_as_str(fields.get("$r", ""), "$r"),
        options=_as_str(fields.get("o", ""), "o"),
    )


def marshal_regex(value: Regex) -> bytes:
    """Encode a Regex as ``{"$r": <pattern>, "o": <options>}``."""
    return (
        b'{"$r":'
        + _encode_string(value.pattern)
        + b',"o":'
        + _encode_string(value.options)
        + b"}"
    )