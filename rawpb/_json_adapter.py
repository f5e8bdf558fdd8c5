"""rawpb JSON adapter.

Decoded messages are plain dicts, so json.dumps() already works on
them.  This module exists for the way back: a JSON document is only
safe to feed to encode() if it still carries the exact field key
strings and nothing was lost while parsing.

Two things json.loads() does silently that we refuse here:

  - duplicate keys: the last one wins and the earlier occurrences of
    that field disappear.  A decoded message never has duplicates
    (repeats become lists), so a duplicate means the JSON was edited
    by hand.  Rejected with MalformedFieldKey.
  - anything that is not an object at the root.

Key syntax is checked eagerly via FieldKey.parse so a bad key fails
with its own error code before any encoding starts.  Value shapes are
left to the encoder, which knows the semantic types.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

from ._errors import ERR_FIELD_KEY, ERR_INPUT, ERR_VALUE_TYPE, PbError
from ._keys import FieldKey


def _pairs_hook(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise PbError(ERR_FIELD_KEY, "duplicate field key {!r} in JSON".format(key))
        FieldKey.parse(key)
        result[key] = value
    return result


def json_to_value(text: Any) -> Dict[str, Any]:
    """Parse JSON text (str or UTF-8 bytes) into a structured value."""
    if isinstance(text, (bytes, bytearray)):
        try:
            text = bytes(text).decode("utf-8")
        except UnicodeDecodeError:
            raise PbError(ERR_INPUT, "JSON input is not valid UTF-8")
    if not isinstance(text, str):
        raise PbError(ERR_INPUT, "JSON input must be str or bytes")

    try:
        obj = json.loads(text, object_pairs_hook=_pairs_hook)
    except PbError:
        raise
    except json.JSONDecodeError as exc:
        raise PbError(ERR_INPUT, "JSON parse error: {}".format(exc))
    except RecursionError:
        raise PbError(ERR_INPUT, "JSON input is nested too deeply to parse")

    if not isinstance(obj, dict):
        raise PbError(ERR_VALUE_TYPE,
                      "JSON root must be an object, got {}".format(type(obj).__name__))
    return obj


def value_to_json(value: Dict[str, Any], indent: Optional[int] = 2) -> str:
    """Serialize a structured value to JSON, keeping key order and text as-is."""
    if not isinstance(value, dict):
        raise PbError(ERR_VALUE_TYPE,
                      "structured value must be a dict, got {}".format(type(value).__name__))
    # json.dumps recurses once per nesting level.
    try:
        return json.dumps(value, indent=indent, ensure_ascii=False)
    except RecursionError:
        raise PbError(ERR_VALUE_TYPE, "structured value is nested too deeply for JSON")
