"""Varint and tag codecs.

Varints are base-128, low group first, with the high bit of each byte
set on every byte except the last.  They carry 64 bits, read back as a
signed two's-complement int64: ten 0xFF-ish bytes ending in 0x01 are -1,
not 18446744073709551615.

Every reader takes an explicit `limit` rather than trusting len(buf).
Inside a nested message the limit is the end of that message's span,
so a corrupt length prefix can never walk into a sibling's bytes.
"""

from __future__ import annotations

import re
from typing import Tuple, Union

from ._constants import (
    INT64_MAX,
    INT64_MIN,
    MAX_FIELD_NUMBER,
    MAX_SAFE_INTEGER,
    MAX_VARINT_BYTES,
    SUPPORTED_WIRE_TYPES,
    UINT64_MASK,
    UINT64_MAX,
)
from ._errors import (
    ERR_FIELD_NUMBER,
    ERR_TRUNCATED,
    ERR_VALUE_TYPE,
    ERR_VARINT_OVERFLOW,
    ERR_WIRE_TYPE,
    PbError,
)

Number = Union[int, str]

_DECIMAL_RE = re.compile(r"^-?[0-9]+$", re.ASCII)


def to_signed64(n: int) -> int:
    """Reinterpret an unsigned 64-bit value as two's-complement int64."""
    if n > INT64_MAX:
        return n - (1 << 64)
    return n


# ── Varint decode ────────────────────────────────────────────

def read_raw_varint(buf: bytes, offset: int, limit: int) -> Tuple[int, int]:
    """Read one varint as an unsigned 64-bit integer.

    Returns (value, new_offset).  Bits past the 64th (only possible in
    a 10th byte) are dropped, matching how int64 readers truncate.
    """
    result = 0
    shift = 0
    pos = offset
    while True:
        if pos - offset >= MAX_VARINT_BYTES:
            raise PbError(ERR_VARINT_OVERFLOW,
                          "varint at offset {} exceeds {} bytes".format(offset, MAX_VARINT_BYTES))
        if pos >= limit:
            raise PbError(ERR_TRUNCATED,
                          "varint at offset {} runs past end {}".format(offset, limit))
        b = buf[pos]
        pos += 1
        result |= (b & 0x7F) << shift
        if not b & 0x80:
            return result & UINT64_MASK, pos
        shift += 7


def decode_varint(buf: bytes, offset: int, limit: int) -> Tuple[Number, int]:
    """Decode a signed 64-bit varint.

    Values within +/- MAX_SAFE_INTEGER come back as int; anything wider
    comes back as its decimal string so it survives a trip through JSON
    consumers that store numbers as doubles.
    """
    raw, pos = read_raw_varint(buf, offset, limit)
    value = to_signed64(raw)
    if -MAX_SAFE_INTEGER <= value <= MAX_SAFE_INTEGER:
        return value, pos
    return str(value), pos


# ── Varint encode ────────────────────────────────────────────

def _coerce_integer(value: object) -> int:
    # bool is an int subclass; True must not silently encode as 1.
    if isinstance(value, bool):
        raise PbError(ERR_VALUE_TYPE, "varint value must be an integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        if not _DECIMAL_RE.match(value):
            raise PbError(ERR_VALUE_TYPE, "not a decimal integer string: {!r}".format(value))
        return int(value)
    raise PbError(ERR_VALUE_TYPE,
                  "varint value must be int or decimal str, got {}".format(type(value).__name__))


def encode_varint(value: Number) -> bytes:
    """Encode an int (or decimal string) as a 64-bit varint.

    Negative values are sign-extended to 64 bits first, so -1 is ten
    bytes long.  Truncating to 32 bits here would lose the high word of
    every negative int64.
    """
    n = _coerce_integer(value)
    if n < INT64_MIN or n > UINT64_MAX:
        raise PbError(ERR_VALUE_TYPE, "integer {} does not fit in 64 bits".format(n))
    n &= UINT64_MASK

    out = bytearray()
    while True:
        b = n & 0x7F
        n >>= 7
        if n:
            out.append(b | 0x80)
        else:
            out.append(b)
            break
    return bytes(out)


# ── Tags ─────────────────────────────────────────────────────

def decode_tag(buf: bytes, offset: int, limit: int) -> Tuple[int, int, int]:
    """Decode a field tag into (wire_type, field_number, new_offset)."""
    raw, pos = read_raw_varint(buf, offset, limit)
    tag = to_signed64(raw)
    wire_type = tag & 0x07
    field_number = tag >> 3
    if field_number < 1:
        raise PbError(ERR_FIELD_NUMBER,
                      "field number {} at offset {} is less than 1".format(field_number, offset))
    if wire_type not in SUPPORTED_WIRE_TYPES:
        raise PbError(ERR_WIRE_TYPE,
                      "wire type {} for field {} at offset {} is not supported "
                      "(groups 3/4 are deprecated)".format(wire_type, field_number, offset))
    return wire_type, field_number, pos


def encode_tag(field_number: int, wire_type: int) -> bytes:
    """Encode (field_number << 3 | wire_type) as a varint."""
    if isinstance(field_number, bool) or not isinstance(field_number, int):
        raise PbError(ERR_FIELD_NUMBER, "field number must be an integer")
    if field_number < 1 or field_number > MAX_FIELD_NUMBER:
        raise PbError(ERR_FIELD_NUMBER, "field number {} out of range".format(field_number))
    if wire_type not in SUPPORTED_WIRE_TYPES:
        raise PbError(ERR_WIRE_TYPE, "wire type {} is not supported".format(wire_type))
    return encode_varint(field_number << 3 | wire_type)
