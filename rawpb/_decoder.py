"""rawpb decoder: raw wire bytes -> structured value, with no schema.

The hard part is wire type 2.  A length-delimited span may be a nested
message, a UTF-8 string, or opaque bytes, and the wire does not say
which.  The rule used here is "assume message, fall back to text":

    1. A non-empty LEN span is opened as a nested message frame.
    2. If every field inside it decodes cleanly, it becomes "<n>/object".
    3. If anything inside it fails to decode (bad tag, group wire type,
       truncated value, overlong varint), the frame is thrown away and
       its bytes are re-read as UTF-8 text: "<n>/string".
    4. If the bytes are not UTF-8 either, the enclosing frame is given
       up the same way and its (larger) span is tried as text.  Only
       when no frame below the root reads as UTF-8 does decoding fail
       with UndecodableField.  Nothing is dropped silently.

Nesting is handled with an explicit stack of byte-range frames rather
than recursion.  Each frame owns [start, end) of the one input buffer.
Reads are bounded by the current frame's end, and when a frame is
abandoned the parent resumes at that end, which came from the length
prefix, regardless of how far the failed attempt got.  Depth is limited
only by memory, never by the interpreter's recursion limit.

Decoding is pure: the input is never written to and no state outlives
one call.
"""

from __future__ import annotations

import logging
import struct
from typing import Any, Dict, List, Optional

from ._constants import DEFAULT_FLOAT_PRECISION, SemanticType, WireType
from ._errors import ERR_INPUT, ERR_TRUNCATED, ERR_UNDECODABLE, PbError
from ._keys import field_key
from ._varint import decode_tag, decode_varint, read_raw_varint

log = logging.getLogger(__name__)

_FIXED64 = struct.Struct("<d")
_FIXED32 = struct.Struct("<f")


class _Frame:
    """One message under construction and the byte range it owns."""

    __slots__ = ("fields", "start", "end", "field_number")

    def __init__(self, start: int, end: int, field_number: Optional[int]) -> None:
        self.fields: Dict[str, Any] = {}
        self.start = start
        self.end = end
        # None for the root: the root message has no field number.
        self.field_number = field_number


# ── Repeated-field aggregation ───────────────────────────────

def merge_field(fields: Dict[str, Any], key: str, value: Any) -> None:
    """Add one occurrence of a field to a message.

    First occurrence: stored as-is.  Second: promoted to [old, new].
    Later ones: appended.  Dict insertion order keeps first appearance.
    """
    if key not in fields:
        fields[key] = value
        return
    existing = fields[key]
    if isinstance(existing, list):
        existing.append(value)
    else:
        fields[key] = [existing, value]


# ── Scalar readers ───────────────────────────────────────────

def _read_fixed(buf: bytes, pos: int, limit: int, codec: struct.Struct,
                float_precision: Optional[int]):
    end = pos + codec.size
    if end > limit:
        raise PbError(ERR_TRUNCATED,
                      "{}-byte value at offset {} runs past end {}".format(codec.size, pos, limit))
    (value,) = codec.unpack_from(buf, pos)
    if float_precision is not None:
        value = round(value, float_precision)
    return value, end


def _as_bytes(data: Any) -> bytes:
    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    raise PbError(ERR_INPUT,
                  "decode input must be bytes-like, got {}".format(type(data).__name__))


# ── The frame machine ────────────────────────────────────────

def _scan_field(buf: bytes, pos: int, frame: _Frame, stack: List[_Frame],
                float_precision: Optional[int]) -> int:
    """Decode one field record of `frame` starting at `pos`.

    Scalars are merged into the frame directly.  A non-empty LEN span
    pushes a new frame instead; its result is merged when it pops.
    Returns the cursor position after whatever was consumed.
    """
    limit = frame.end
    wire_type, number, pos = decode_tag(buf, pos, limit)

    if wire_type == WireType.VARINT:
        value, pos = decode_varint(buf, pos, limit)
        merge_field(frame.fields, field_key(number, SemanticType.NUMBER), value)
        return pos

    if wire_type == WireType.FIXED64:
        value, pos = _read_fixed(buf, pos, limit, _FIXED64, float_precision)
        merge_field(frame.fields, field_key(number, SemanticType.DOUBLE), value)
        return pos

    if wire_type == WireType.FIXED32:
        value, pos = _read_fixed(buf, pos, limit, _FIXED32, float_precision)
        merge_field(frame.fields, field_key(number, SemanticType.FLOAT), value)
        return pos

    # WireType.LEN -- decode_tag has already rejected everything else.
    length, pos = read_raw_varint(buf, pos, limit)
    if length > limit - pos:
        raise PbError(ERR_TRUNCATED,
                      "field {} claims {} bytes at offset {}, only {} remain".format(
                          number, length, pos, limit - pos))
    if length == 0:
        # No field record fits in zero bytes, so there is nothing to guess.
        merge_field(frame.fields, field_key(number, SemanticType.STRING), "")
        return pos

    stack.append(_Frame(pos, pos + length, number))
    return pos


def _fall_back_to_text(buf: bytes, stack: List[_Frame], cause: PbError) -> int:
    """Abandon the innermost frame and re-read its span as UTF-8 text.

    A span that is not UTF-8 fails its enclosing message too, so the
    next frame out is abandoned and tried as text in turn.  A nested
    attempt can cut through a multi-byte character that the enclosing
    span holds whole.  Only when every frame up to the root has failed
    is the field undecodable.
    """
    frame = stack.pop()
    while True:
        try:
            text = buf[frame.start:frame.end].decode("utf-8")
            break
        except UnicodeDecodeError:
            if len(stack) < 2:
                raise PbError(ERR_UNDECODABLE,
                              "field {} at [{}, {}) is neither a message ({}) nor UTF-8 text".format(
                                  frame.field_number, frame.start, frame.end, cause))
            log.debug("field %d at [%d, %d) is not UTF-8, retrying enclosing field",
                      frame.field_number, frame.start, frame.end)
            frame = stack.pop()
    log.debug("field %d at [%d, %d) read as text: %s",
              frame.field_number, frame.start, frame.end, cause)
    merge_field(stack[-1].fields, field_key(frame.field_number, SemanticType.STRING), text)
    return frame.end


def decode_message(data: Any, *,
                   float_precision: Optional[int] = DEFAULT_FLOAT_PRECISION) -> Dict[str, Any]:
    """Decode a raw protobuf payload into an ordered dict of field keys.

    `float_precision` is the number of decimal places doubles and floats
    are rounded to; None keeps the exact IEEE-754 value.
    """
    buf = _as_bytes(data)
    root = _Frame(0, len(buf), None)
    stack = [root]
    pos = 0

    while True:
        frame = stack[-1]

        if pos == frame.end:
            stack.pop()
            if not stack:
                return frame.fields
            merge_field(stack[-1].fields,
                        field_key(frame.field_number, SemanticType.OBJECT),
                        frame.fields)
            continue

        try:
            pos = _scan_field(buf, pos, frame, stack, float_precision)
        except PbError as exc:
            if frame is root or not exc.recoverable:
                raise
            pos = _fall_back_to_text(buf, stack, exc)
