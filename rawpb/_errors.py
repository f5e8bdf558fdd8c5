"""rawpb error codes and exception class.

Every failure surfaces as a single exception type, PbError, whose
`.code` says what went wrong.  Callers are expected to treat a decode
failure as "this buffer is not a plausible protobuf message" and branch
on it like any other result.

Four of the codes are also raised *inside* the decoder while it is
tentatively reading a length-delimited span as a nested message.  Those
are absorbed there: the span is re-read as text instead.  They only
reach the caller when they happen at the top level.
"""

from __future__ import annotations

from typing import FrozenSet

# ── Decode errors ────────────────────────────────────────────

ERR_TRUNCATED: str = "TruncatedInput"             # range ended mid-field
ERR_WIRE_TYPE: str = "UnsupportedWireType"        # wire type 3, 4, 6, 7
ERR_FIELD_NUMBER: str = "InvalidFieldNumber"      # field number < 1
ERR_VARINT_OVERFLOW: str = "VarintOverflow"       # more than 10 varint bytes
ERR_UNDECODABLE: str = "UndecodableField"         # LEN span: not a message, not UTF-8

# ── Encode errors ────────────────────────────────────────────

ERR_SEMANTIC_TYPE: str = "UnsupportedSemanticType"  # unknown key suffix
ERR_FIELD_KEY: str = "MalformedFieldKey"            # key not "<n>/<type>"
ERR_VALUE_TYPE: str = "ValueTypeMismatch"           # value shape vs. key suffix

# ── Envelope errors ──────────────────────────────────────────

ERR_INPUT: str = "InvalidInput"                   # not bytes, bad base64/hex/JSON

# Errors the ambiguity resolver recovers from inside a nested frame.
RECOVERABLE_DECODE_ERRORS: FrozenSet[str] = frozenset(
    (ERR_TRUNCATED, ERR_WIRE_TYPE, ERR_FIELD_NUMBER, ERR_VARINT_OVERFLOW)
)


class PbError(Exception):
    """Exception for rawpb encode/decode errors.

    The `.code` attribute is one of the ERR_* strings above and is what
    conformance vectors compare against.
    """

    def __init__(self, code: str, msg: str = "") -> None:
        super().__init__(msg or code)
        self.code = code

    @property
    def recoverable(self) -> bool:
        """True if a nested-message attempt may fall back to text."""
        return self.code in RECOVERABLE_DECODE_ERRORS
