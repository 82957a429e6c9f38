"""
Resource records for Typst encoding.

A Resource models a row fetched from a queryable data source: only the
attributes that were selected by the query are loaded, relationships may or
may not have been loaded, and calculations/aggregates ride along in their own
maps. Encoding keeps exactly what a template may rely on.

Example:
    class Invoice(Resource):
        attributes = ("id", "number", "total", "internal_note")
        relationships = ("customer", "line_items")

    invoice = Invoice(id=1, number="INV-1", total=Decimal("10.00"))
    encode(invoice)
    # '("id": int(1), "number": "INV-1", "total": decimal("10.00"),
    #   "customer": none, "line_items": none, "calculations": (:), "aggregates": (:))'
"""

import copy
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, FrozenSet, Iterable, Optional, Tuple

from quire.contexts.encoding.code import Encodable, EncodingContext, encode

SYNTHETIC_FIELDS = ("calculations", "aggregates")


class NotLoaded(Encodable):
    """Placeholder for a field the query did not load. Encodes as ``none``."""

    _instance: ClassVar[Optional["NotLoaded"]] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_LOADED"

    def __bool__(self) -> bool:
        return False

    def encode_typst(self, context: EncodingContext) -> str:
        return "none"


NOT_LOADED = NotLoaded()


class CiString(Encodable):
    """Case-insensitive string. Compares case-insensitively, encodes as its original text."""

    __slots__ = ("string",)

    def __init__(self, string: str):
        self.string = string

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, CiString):
            other = other.string
        if isinstance(other, str):
            return self.string.casefold() == other.casefold()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.string.casefold())

    def __str__(self) -> str:
        return self.string

    def __repr__(self) -> str:
        return f"CiString({self.string!r})"

    def encode_typst(self, context: EncodingContext) -> str:
        return encode(self.string, context)


@dataclass(frozen=True)
class ResourceMetadata:
    """Load state of a resource instance."""

    selected: FrozenSet[str] = field(default_factory=frozenset)


class Resource(Encodable):
    """
    Base class for queryable records.

    Subclasses declare their public ``attributes`` and ``relationships``.
    Fields not passed to the constructor are NOT_LOADED. An attribute counts
    as selected when it was passed in, unless ``selected`` narrows it.

    Default encoding keeps selected attributes, every relationship (unloaded
    ones encode as none) and the ``calculations`` / ``aggregates`` maps.
    """

    attributes: ClassVar[Tuple[str, ...]] = ()
    relationships: ClassVar[Tuple[str, ...]] = ()

    def __init__(
        self,
        *,
        selected: Optional[Iterable[str]] = None,
        calculations: Optional[Dict[str, Any]] = None,
        aggregates: Optional[Dict[str, Any]] = None,
        **fields: Any,
    ):
        unknown = set(fields) - set(self.attributes) - set(self.relationships)
        if unknown:
            raise TypeError(
                f"{type(self).__name__} got unknown fields: {', '.join(sorted(unknown))}"
            )

        for name in self.attributes + self.relationships:
            setattr(self, name, fields.get(name, NOT_LOADED))
        self.calculations = dict(calculations or {})
        self.aggregates = dict(aggregates or {})

        loaded = {name for name in self.attributes if name in fields}
        if selected is not None:
            loaded &= set(selected)
        self.__metadata__ = ResourceMetadata(selected=frozenset(loaded))

    def __repr__(self) -> str:
        loaded = ", ".join(
            f"{name}={getattr(self, name)!r}"
            for name in self.attributes
            if name in self.__metadata__.selected
        )
        return f"{type(self).__name__}({loaded})"

    def __eq__(self, other: Any) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.typst_fields() == other.typst_fields()

    __hash__ = None

    def typst_fields(self) -> Dict[str, Any]:
        fields = {
            name: getattr(self, name)
            for name in self.attributes
            if name in self.__metadata__.selected
        }
        for name in self.relationships:
            fields[name] = getattr(self, name)
        for name in SYNTHETIC_FIELDS:
            fields[name] = getattr(self, name)
        return fields

    def with_selection(self, names: Iterable[str]) -> "Resource":
        """Copy of this record with only ``names`` left selected; the rest become NOT_LOADED."""
        names = set(names)
        unknown = names - set(self.attributes)
        if unknown:
            raise ValueError(
                f"{type(self).__name__} has no attributes: {', '.join(sorted(unknown))}"
            )

        narrowed = copy.copy(self)
        for name in self.attributes:
            if name not in names:
                setattr(narrowed, name, NOT_LOADED)
        narrowed.__metadata__ = ResourceMetadata(
            selected=frozenset(self.__metadata__.selected & names)
        )
        return narrowed

    def is_loaded(self, name: str) -> bool:
        return getattr(self, name, NOT_LOADED) is not NOT_LOADED
