"""
Encoding context threaded through every recursive encode call.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence, Union

DEFAULT_TIMEZONE = "UTC"


@dataclass(frozen=True)
class EncodingContext:
    """
    Immutable option bag for encoding.

    Attributes:
        timezone: IANA zone id that aware datetimes are shifted to before encoding
        struct_keys: Composite class (or class name) -> explicit field allowlist.
                     Overrides the default visibility filtering for that kind.
        options: Any further caller-defined options, passed through untouched
    """

    timezone: str = DEFAULT_TIMEZONE
    struct_keys: Mapping[Any, Sequence[str]] = field(default_factory=dict)
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Freeze the mappings so a context can be shared across sessions
        object.__setattr__(self, "struct_keys", MappingProxyType(dict(self.struct_keys)))
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))

    @classmethod
    def coerce(cls, context: Union["EncodingContext", Mapping[str, Any], None]) -> "EncodingContext":
        """Build a context from None, a plain mapping, or an existing context."""
        if context is None:
            return DEFAULT_CONTEXT
        if isinstance(context, EncodingContext):
            return context

        options = dict(context)
        timezone = options.pop("timezone", None) or DEFAULT_TIMEZONE
        struct_keys = options.pop("struct_keys", None) or {}
        return cls(timezone=timezone, struct_keys=struct_keys, options=options)

    def keys_for(self, kind: type) -> Optional[Sequence[str]]:
        """Return the explicit field allowlist for a composite class, if any."""
        if kind in self.struct_keys:
            return self.struct_keys[kind]
        for name in (kind.__qualname__, kind.__name__):
            if name in self.struct_keys:
                return self.struct_keys[name]
        return None

    def get(self, key: str, default: Any = None) -> Any:
        if key == "timezone":
            return self.timezone
        if key == "struct_keys":
            return self.struct_keys
        return self.options.get(key, default)


DEFAULT_CONTEXT = EncodingContext()
