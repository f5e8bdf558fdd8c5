"""rawpb encoder: structured value -> protobuf wire bytes.

The inverse of the decoder.  Each key's semantic type picks the wire
encoding:

    number  -> VARINT   tag + varint (int, or decimal str for wide values)
    double  -> FIXED64  tag + 8 bytes little-endian IEEE-754
    float   -> FIXED32  tag + 4 bytes little-endian IEEE-754
    string  -> LEN      tag + length + UTF-8 bytes
    object  -> LEN      tag + length + the nested message's fields

A list value is a repeated field: one tag+value pair per element, the
way protobuf writes unpacked repeated fields.  The root message has no
field number of its own, so its fields are emitted bare.

Like the decoder, nesting uses an explicit stack: anything decode() can
produce, however deep, encodes without touching the recursion limit.
"""

from __future__ import annotations

import struct
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ._constants import SemanticType
from ._errors import ERR_VALUE_TYPE, PbError
from ._keys import FieldKey
from ._varint import encode_tag, encode_varint

_FIXED64 = struct.Struct("<d")
_FIXED32 = struct.Struct("<f")


def _fields_of(message: Dict[str, Any]) -> Iterator[Tuple[FieldKey, Any]]:
    """Yield (key, occurrence) pairs, expanding repeated fields in order."""
    for key, value in message.items():
        fk = FieldKey.parse(key)
        if isinstance(value, (list, tuple)):
            for item in value:
                if isinstance(item, (list, tuple)):
                    raise PbError(ERR_VALUE_TYPE,
                                  "{}: repeated field elements cannot be sequences".format(key))
                yield fk, item
        else:
            yield fk, value


def _pack_float(key: FieldKey, value: Any, codec: struct.Struct) -> bytes:
    # bool before int/float: True is an int in Python.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PbError(ERR_VALUE_TYPE,
                      "{}: expected a number, got {}".format(key, type(value).__name__))
    try:
        return codec.pack(value)
    except (OverflowError, struct.error):
        raise PbError(ERR_VALUE_TYPE, "{}: {!r} out of range for {}".format(
            key, value, key.semantic_type.value))


def _encode_scalar(key: FieldKey, value: Any) -> bytes:
    stype = key.semantic_type
    tag = encode_tag(key.field_number, key.wire_type)

    if stype is SemanticType.NUMBER:
        try:
            return tag + encode_varint(value)
        except PbError as exc:
            raise PbError(exc.code, "{}: {}".format(key, exc))

    if stype is SemanticType.DOUBLE:
        return tag + _pack_float(key, value, _FIXED64)

    if stype is SemanticType.FLOAT:
        return tag + _pack_float(key, value, _FIXED32)

    # SemanticType.STRING
    if not isinstance(value, str):
        raise PbError(ERR_VALUE_TYPE,
                      "{}: expected str, got {}".format(key, type(value).__name__))
    try:
        raw = value.encode("utf-8")
    except UnicodeEncodeError:
        raise PbError(ERR_VALUE_TYPE, "{}: string is not encodable as UTF-8".format(key))
    return tag + encode_varint(len(raw)) + raw


class _Pending:
    """A message whose fields are still being encoded."""

    __slots__ = ("fields", "parts", "tag")

    def __init__(self, message: Dict[str, Any], tag: Optional[bytes]) -> None:
        self.fields = _fields_of(message)
        self.parts: List[bytes] = []
        # None for the root, which is emitted without tag or length.
        self.tag = tag


def encode_message(value: Any) -> bytes:
    """Encode a structured value (a dict of field keys) to wire bytes."""
    if not isinstance(value, dict):
        raise PbError(ERR_VALUE_TYPE,
                      "root value must be a dict, got {}".format(type(value).__name__))

    stack = [_Pending(value, None)]
    while True:
        top = stack[-1]
        nxt = next(top.fields, None)

        if nxt is None:
            body = b"".join(top.parts)
            stack.pop()
            if not stack:
                return body
            stack[-1].parts.append(top.tag + encode_varint(len(body)) + body)
            continue

        key, item = nxt
        if key.semantic_type is SemanticType.OBJECT:
            if not isinstance(item, dict):
                raise PbError(ERR_VALUE_TYPE,
                              "{}: expected dict, got {}".format(key, type(item).__name__))
            stack.append(_Pending(item, encode_tag(key.field_number, key.wire_type)))
        else:
            top.parts.append(_encode_scalar(key, item))
