"""Field keys: the "<field-number>/<semantic-type>" strings of a decoded message.

A raw protobuf payload names its fields by number only.  Without a
schema the same number can show up as a varint in one place and as a
string in another, and the encoder needs the type back to re-serialize.
So decoded messages are keyed by both, e.g. "1/number" or "7/object".

The text form is the only "schema" callers ever see.  Anything that
stores a decoded message (JSON dumps, fixtures) must keep these exact
strings for encode() to accept them again.
"""

from __future__ import annotations

import re
from typing import NamedTuple

from ._constants import MAX_FIELD_NUMBER, SemanticType
from ._errors import (
    ERR_FIELD_KEY,
    ERR_FIELD_NUMBER,
    ERR_SEMANTIC_TYPE,
    PbError,
)

# Decimal digits, no sign, no leading zeros (except "0" itself, which
# is then rejected as a field number rather than as bad syntax).
_KEY_RE = re.compile(r"^(0|[1-9][0-9]*)/([^/]*)$", re.ASCII)

_SEMANTIC_TYPES = {t.value: t for t in SemanticType}


class FieldKey(NamedTuple):
    field_number: int
    semantic_type: SemanticType

    def __str__(self) -> str:
        return "{}/{}".format(self.field_number, self.semantic_type.value)

    @property
    def wire_type(self) -> int:
        return self.semantic_type.wire_type

    @classmethod
    def parse(cls, text: str) -> "FieldKey":
        """Parse a canonical key string.

        Raises PbError with MalformedFieldKey for anything that is not
        "<digits>/<word>", InvalidFieldNumber for a number outside
        [1, MAX_FIELD_NUMBER], and UnsupportedSemanticType for a suffix
        that is not one of the five semantic types.
        """
        if not isinstance(text, str):
            raise PbError(ERR_FIELD_KEY,
                          "field key must be a string, got {}".format(type(text).__name__))
        m = _KEY_RE.match(text)
        if m is None:
            raise PbError(ERR_FIELD_KEY, "malformed field key {!r}".format(text))
        number = int(m.group(1))
        if number < 1 or number > MAX_FIELD_NUMBER:
            raise PbError(ERR_FIELD_NUMBER,
                          "field number {} out of range in key {!r}".format(number, text))
        stype = _SEMANTIC_TYPES.get(m.group(2))
        if stype is None:
            raise PbError(ERR_SEMANTIC_TYPE,
                          "unsupported semantic type {!r} in key {!r}".format(m.group(2), text))
        return cls(number, stype)


def field_key(field_number: int, semantic_type: SemanticType) -> str:
    """Build the key string for a decoded field."""
    return "{}/{}".format(field_number, semantic_type.value)
