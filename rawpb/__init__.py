"""rawpb: schema-less Protocol Buffer codec.

Decode protobuf wire bytes without a .proto file into an ordered dict
keyed by "<field-number>/<semantic-type>", and encode such a dict back
into wire bytes.

Quick start:
    >>> from rawpb import decode, encode
    >>> decode(b"\\x08\\x01")
    {'1/number': 1}
    >>> encode({"1/number": 1})
    b'\\x08\\x01'

Length-delimited fields are tried as nested messages first and fall
back to UTF-8 text:
    >>> decode(b"\\x0a\\x05hello")
    {'1/string': 'hello'}
    >>> decode(b"\\x0a\\x02\\x08\\x07")
    {'1/object': {'1/number': 7}}
"""

from __future__ import annotations

import base64
import binascii
from typing import Any, Dict, Optional

from ._constants import (
    DEFAULT_FLOAT_PRECISION,
    INT64_MAX,
    INT64_MIN,
    MAX_FIELD_NUMBER,
    MAX_SAFE_INTEGER,
    SemanticType,
    WireType,
)
from ._decoder import decode_message
from ._encoder import encode_message
from ._errors import (
    ERR_FIELD_KEY,
    ERR_FIELD_NUMBER,
    ERR_INPUT,
    ERR_SEMANTIC_TYPE,
    ERR_TRUNCATED,
    ERR_UNDECODABLE,
    ERR_VALUE_TYPE,
    ERR_VARINT_OVERFLOW,
    ERR_WIRE_TYPE,
    RECOVERABLE_DECODE_ERRORS,
    PbError,
)
from ._json_adapter import json_to_value, value_to_json
from ._keys import FieldKey, field_key
from ._varint import (
    decode_tag,
    decode_varint,
    encode_tag,
    encode_varint,
    read_raw_varint,
)

__version__ = "1.0.0"

__all__ = [
    # Public API functions
    "decode",
    "encode",
    "decode_base64",
    "encode_base64",
    "decode_hex",
    "encode_hex",
    "to_json",
    "from_json",
    # Field keys
    "FieldKey",
    "SemanticType",
    "WireType",
    "field_key",
    # Wire primitives
    "decode_varint",
    "encode_varint",
    "read_raw_varint",
    "decode_tag",
    "encode_tag",
    # Exception
    "PbError",
    # Error codes
    "ERR_TRUNCATED",
    "ERR_WIRE_TYPE",
    "ERR_FIELD_NUMBER",
    "ERR_VARINT_OVERFLOW",
    "ERR_UNDECODABLE",
    "ERR_SEMANTIC_TYPE",
    "ERR_FIELD_KEY",
    "ERR_VALUE_TYPE",
    "ERR_INPUT",
    "RECOVERABLE_DECODE_ERRORS",
    # Constants
    "DEFAULT_FLOAT_PRECISION",
    "INT64_MIN",
    "INT64_MAX",
    "MAX_FIELD_NUMBER",
    "MAX_SAFE_INTEGER",
]


# ── Core API ──────────────────────────────────────────────────

def decode(data: Any, *,
           float_precision: Optional[int] = DEFAULT_FLOAT_PRECISION) -> Dict[str, Any]:
    """Decode raw protobuf bytes into a structured value.

    Accepts bytes, bytearray or memoryview.  Doubles and floats are
    rounded to `float_precision` decimal places (None: no rounding).
    Raises PbError when the buffer is not a plausible protobuf message.
    """
    return decode_message(data, float_precision=float_precision)


def encode(value: Dict[str, Any]) -> bytes:
    """Encode a structured value back into protobuf wire bytes."""
    return encode_message(value)


# ── Transport conveniences ────────────────────────────────────
# Captured payloads usually travel as base64 (HTTP bodies, proxy
# exports) or as hex dumps.  These wrap decode/encode for both.

def decode_base64(text: Any, *,
                  float_precision: Optional[int] = DEFAULT_FLOAT_PRECISION) -> Dict[str, Any]:
    """Decode a base64-encoded protobuf payload.

    Whitespace is ignored, so line-wrapped output of `base64` or
    base64.encodebytes() is accepted.  Any other non-alphabet character
    is an error.
    """
    if isinstance(text, str):
        text = "".join(text.split())
    elif isinstance(text, (bytes, bytearray)):
        text = b"".join(text.split())
    try:
        raw = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError, TypeError):
        raise PbError(ERR_INPUT, "invalid base64 input")
    return decode_message(raw, float_precision=float_precision)


def encode_base64(value: Dict[str, Any]) -> str:
    """Encode a structured value and return the wire bytes as base64 text."""
    return base64.b64encode(encode_message(value)).decode("ascii")


def decode_hex(text: str, *,
               float_precision: Optional[int] = DEFAULT_FLOAT_PRECISION) -> Dict[str, Any]:
    """Decode a hex dump ("0a05..." or "0a 05 ...") of a protobuf payload."""
    try:
        raw = bytes.fromhex(text)
    except (ValueError, TypeError):
        raise PbError(ERR_INPUT, "invalid hex input")
    return decode_message(raw, float_precision=float_precision)


def encode_hex(value: Dict[str, Any]) -> str:
    """Encode a structured value and return the wire bytes as lowercase hex."""
    return encode_message(value).hex()


# ── JSON ──────────────────────────────────────────────────────

def to_json(value: Dict[str, Any], *, indent: Optional[int] = 2) -> str:
    """Serialize a structured value to JSON, preserving field keys and order."""
    return value_to_json(value, indent=indent)


def from_json(text: Any) -> Dict[str, Any]:
    """Parse JSON produced by to_json() (or edited by hand) for encode()."""
    return json_to_value(text)
