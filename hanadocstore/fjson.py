"""Encoding and decoding of documents and arrays in the FJSON storage format.

Python values map onto FJSON as follows: ``dict`` is a document, ``list`` an
array, ``float`` a double, ``int`` an integer, ``str`` a string, ``bool`` a
boolean, ``None`` null, and :class:`ObjectID`, :class:`Regex` and
``datetime`` their tagged object forms.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from .scalars import (
    Data,
    FJSONError,
    ObjectID,
    Regex,
    _decode,
    _encode_string,
    marshal_bool,
    marshal_datetime,
    marshal_double,
    marshal_int64,
    marshal_object_id,
    marshal_regex,
    marshal_string,
    unmarshal_datetime,
    unmarshal_object_id,
    unmarshal_regex,
)

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1


class UnsupportedTypeError(FJSONError, TypeError):
    """Raised when a value of a type FJSON cannot hold is encoded."""

    def __init__(self, value: Any) -> None:
        super().__init__(f"datatype {type(value).__name__} is not supported")


class _Pairs(list):
    """Key-value pairs of one JSON object, in the order they appear."""


def _reject_constant(name: str) -> Any:
    raise FJSONError(f"invalid character {name[0]!r} looking for beginning of value")


_PAIRS_DECODER = json.JSONDecoder(object_pairs_hook=_Pairs, parse_constant=_reject_constant)


def _as_text(data: Data) -> str:
    if isinstance(data, str):
        return data
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data).decode("utf-8", errors="replace")
    raise TypeError(f"expected bytes or str, got {type(data).__name__}")


def _kind(value: Any) -> str:
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    if isinstance(value, str):
        return "string"
    if isinstance(value, bool):
        return "bool"
    if value is None:
        return "null"
    return "number"


def _number(value: int | float) -> int | float:
    if isinstance(value, int):
        if _INT64_MIN <= value <= _INT64_MAX:
            return value
        try:
            value = float(value)
        except OverflowError as exc:
            raise FJSONError(f"cannot unmarshal number {value} into float64") from exc
    if value in (float("inf"), float("-inf")):
        raise FJSONError("cannot unmarshal number out of range into float64")
    return value


def _from_json(value: Any) -> Any:
    """Turn a decoded JSON value into its FJSON Python value."""
    if isinstance(value, dict):
        if value.get("oid") is not None:
            return unmarshal_object_id(json.dumps(value))
        if value.get("$da") is not None:
            return unmarshal_datetime(json.dumps(value))
        if value.get("$r") is not None:
            return unmarshal_regex(json.dumps(value))
        return {key: _from_json(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_from_json(item) for item in value]
    if value is None or isinstance(value, (str, bool)):
        return value
    if isinstance(value, (int, float)):
        return _number(value)
    raise FJSONError(f"fjson.Unmarshal: unhandled element {type(value).__name__} ({value!r})")


def unmarshal(data: Data) -> Any:
    """Decode one FJSON value."""
    text = _as_text(data)
    if text == "null":
        return None
    return _from_json(_decode(text))


def unmarshal_array(data: Data) -> list[Any]:
    """Decode an FJSON array."""
    value = _decode(data)
    if not isinstance(value, list):
        raise FJSONError(f"cannot unmarshal {_kind(value)} into array")
    return [_from_json(item) for item in value]


def unmarshal_document(data: Data) -> dict[str, Any]:
    """Decode an FJSON document, keeping the order of its keys."""
    value = _decode(data)
    if not isinstance(value, dict):
        raise FJSONError(f"cannot unmarshal {_kind(value)} into document")
    return {key: _from_json(item) for key, item in value.items()}


def json_keys(data: Data) -> list[str]:
    """Return the top-level keys of a JSON object in the order they appear."""
    try:
        value = _PAIRS_DECODER.decode(_as_text(data))
    except json.JSONDecodeError as exc:
        raise FJSONError(f"invalid JSON at offset {exc.pos}: {exc.msg}") from exc
    if not isinstance(value, _Pairs):
        raise FJSONError("JSON value is not an object")
    return [key for key, _ in value]


def marshal(value: Any) -> bytes:
    """Encode a value as FJSON for the wire protocol."""
    if value is None:
        return b"null"
    if isinstance(value, bool):
        return marshal_bool(value)
    if isinstance(value, int):
        return marshal_int64(value)
    if isinstance(value, float):
        return marshal_double(value)
    if isinstance(value, str):
        return marshal_string(value)
    if isinstance(value, ObjectID):
        return marshal_object_id(value)
    if isinstance(value, Regex):
        return marshal_regex(value)
    if isinstance(value, datetime):
        return marshal_datetime(value)
    if isinstance(value, Mapping):
        return marshal_document(value)
    if isinstance(value, (list, tuple)):
        return marshal_array(value)
    raise UnsupportedTypeError(value)


def marshal_hana(value: Any) -> bytes:
    """Encode a value as FJSON for storage; dates and regexes are refused."""
    if value is None:
        return b"null"
    if isinstance(value, bool):
        return marshal_bool(value)
    if isinstance(value, int):
        return marshal_int64(value)
    if isinstance(value, float):
        return marshal_double(value)
    if isinstance(value, str):
        return marshal_string(value)
    if isinstance(value, ObjectID):
        return marshal_object_id(value)
    if isinstance(value, Mapping):
        return marshal_document_hana(value)
    if isinstance(value, (list, tuple)):
        return marshal_array(value)
    raise UnsupportedTypeError(value)


def marshal_array(values: Any) -> bytes:
    """Encode a sequence as an FJSON array."""
    return b"[" + b",".join(marshal(item) for item in values) + b"]"


def _field(key: str, encoded: bytes) -> bytes:
    return _encode_string(key) + b":" + encoded


def marshal_document(document: Mapping[str, Any]) -> bytes:
    """Encode a document; an ObjectID ``_id`` is moved to the front."""
    object_id = document.get("_id")
    id_first = isinstance(object_id, ObjectID)
    fields = [b'"_id":' + marshal(object_id)] if id_first else []
    fields.extend(
        _field(key, marshal(item))
        for key, item in document.items()
        if not (id_first and key == "_id")
    )
    return b"{" + b",".join(fields) + b"}"


def marshal_document_hana(document: Mapping[str, Any]) -> bytes:
    """Encode a document for storage; any ``_id`` is moved to the front."""
    id_first = "_id" in document
    fields = [b'"_id":' + marshal_hana(document["_id"])] if id_first else []
    fields.extend(
        _field(key, marshal_hana(item))
        for key, item in document.items()
        if not (id_first and key == "_id")
    )
    return b"{" + b",".join(fields) + b"}"