"""rawpb constants: wire types, semantic types, numeric bounds, defaults.

Wire types follow the protobuf base encoding.  Semantic types are this
codec's own vocabulary: they are what a field key carries in place of
the schema that raw wire data does not have.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict


# ── Wire types (low 3 bits of every tag) ─────────────────────
# 3 and 4 are the deprecated group markers.  They are not supported,
# and neither are 6 or 7, which protobuf never assigned.

class WireType:
    VARINT: int = 0
    FIXED64: int = 1
    LEN: int = 2
    FIXED32: int = 5


SUPPORTED_WIRE_TYPES = frozenset(
    (WireType.VARINT, WireType.FIXED64, WireType.LEN, WireType.FIXED32)
)


# ── Semantic types (the suffix of a field key) ───────────────

class SemanticType(str, Enum):
    NUMBER = "number"
    DOUBLE = "double"
    FLOAT = "float"
    STRING = "string"
    OBJECT = "object"

    @property
    def wire_type(self) -> int:
        return _WIRE_TYPE_OF[self.value]


_WIRE_TYPE_OF: Dict[str, int] = {
    "number": WireType.VARINT,
    "double": WireType.FIXED64,
    "float": WireType.FIXED32,
    "string": WireType.LEN,
    "object": WireType.LEN,
}


# ── Integer bounds ───────────────────────────────────────────
# Varints carry 64 bits.  Decoded values are read as signed int64;
# the encoder also accepts the unsigned range so uint64 payloads built
# by hand are not rejected.

INT64_MIN: int = -(2**63)
INT64_MAX: int = 2**63 - 1
UINT64_MAX: int = 2**64 - 1
UINT64_MASK: int = 2**64 - 1

# Largest integer a double represents exactly.  Decoded numbers outside
# +/- this bound are returned as decimal strings so JSON consumers
# (JavaScript in particular) do not silently round them.
MAX_SAFE_INTEGER: int = 2**53 - 1

# A 64-bit varint never needs more than ten 7-bit groups.
MAX_VARINT_BYTES: int = 10

# A signed 64-bit tag shifted right by 3 leaves 60 bits of field number.
MAX_FIELD_NUMBER: int = 2**60 - 1

# ── Float policy ─────────────────────────────────────────────
# Decoded doubles and floats are rounded to this many decimal places
# so float32 noise (0.1f -> 0.10000000149011612) does not leak into
# displayed payloads.  This is lossy: pass float_precision=None to
# decode() for the exact IEEE-754 value.
DEFAULT_FLOAT_PRECISION: int = 5
