"""
Encoding Context

Responsibilities:
- Converts Python values into Typst literal source text
- Shifts aware datetimes into the configured timezone
- Filters composite records down to their visible fields

Owns: Value -> Typst literal mapping, composite field visibility
Never: Touches sessions, files, or the compiler
"""

from quire.contexts.encoding.code import (
    Encodable,
    encode,
    encode_array,
    encode_binding,
    encode_mapping,
    escape_string,
    register_encoder,
)
from quire.contexts.encoding.context import DEFAULT_TIMEZONE, EncodingContext
from quire.contexts.encoding.resource import NOT_LOADED, CiString, NotLoaded, Resource

__all__ = [
    "encode",
    "encode_array",
    "encode_mapping",
    "encode_binding",
    "escape_string",
    "register_encoder",
    "Encodable",
    "EncodingContext",
    "DEFAULT_TIMEZONE",
    "Resource",
    "NotLoaded",
    "NOT_LOADED",
    "CiString",
]
