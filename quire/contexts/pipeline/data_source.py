"""
Data source boundary.

A render with a ``read`` fetches its records through a ``DataSource``. The
pipeline builds a ``Query`` from the read declaration and the bound arguments
and hands it over together with the caller's ``ExecutionContext``; executing
it (persistence, authorization, tenancy) is the data source's business.

``InMemoryDataSource`` serves a list of records and is enough for scripts,
the command line and tests.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from quire.contexts.encoding.resource import Resource
from quire.contexts.pipeline.errors import ArgumentError

ARG_REFERENCE_PREFIX = "^arg:"


@dataclass(frozen=True)
class ExecutionContext:
    """
    Who a render runs for.

    Attributes:
        actor: Acting user or service (passed through to the data source)
        tenant: Tenant identifier (passed through to the data source)
        extra: Caller-defined context merged into the query
    """

    actor: Any = None
    tenant: Any = None
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Query:
    """
    A read ready for execution.

    Attributes:
        filter: Callable (record, args) -> bool, or mapping field -> concrete value
        load: Relationships/calculations to load
        select: Attributes to select (None = all)
        sort: Sort specification as declared
        limit: Maximum number of records
        arguments: Bound invocation arguments
        context: Extra context from the ExecutionContext
    """

    filter: Any = None
    load: Tuple[str, ...] = ()
    select: Optional[Tuple[str, ...]] = None
    sort: Any = None
    limit: Optional[int] = None
    arguments: Mapping[str, Any] = field(default_factory=dict)
    context: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def build(cls, read, arguments: Mapping[str, Any], context: Optional[ExecutionContext] = None) -> "Query":
        """
        Build a query from a ReadSpec and bound arguments.

        Raises:
            ArgumentError: The filter refers to an argument that does not exist
        """
        return cls(
            filter=resolve_filter(read.filter, arguments),
            load=tuple(read.load),
            select=read.select,
            sort=read.sort,
            limit=read.limit,
            arguments=dict(arguments),
            context=dict(context.extra) if context is not None else {},
        )


def resolve_filter(filter_spec: Any, arguments: Mapping[str, Any]) -> Any:
    """
    Replace "^arg:name" references in a mapping filter with argument values.

    Callables and None are returned unchanged.
    """
    if filter_spec is None or callable(filter_spec):
        return filter_spec
    if not isinstance(filter_spec, Mapping):
        raise TypeError(f"Unsupported filter: {filter_spec!r}")

    resolved = {}
    for key, value in filter_spec.items():
        if isinstance(value, Mapping):
            resolved[key] = resolve_filter(value, arguments)
        elif isinstance(value, str) and value.startswith(ARG_REFERENCE_PREFIX):
            name = value[len(ARG_REFERENCE_PREFIX):]
            if name not in arguments:
                raise ArgumentError(f"Filter refers to unknown argument '{name}'", argument=name)
            resolved[key] = arguments[name]
        else:
            resolved[key] = value
    return resolved


class DataSource(ABC):
    """Interface between a render pipeline and the records it renders."""

    @abstractmethod
    def read_one(self, query: Query, context: ExecutionContext) -> Any:
        """Return the single matching record, or None when there is none."""

    @abstractmethod
    def read(self, query: Query, context: ExecutionContext) -> Iterable[Any]:
        """Return the matching records, in order. May be a lazy iterable."""


# ============================================================================
# In-memory implementation
# ============================================================================


def get_field(record: Any, name: str) -> Any:
    """Field value of a mapping or object record (None if absent)."""
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def matches(record: Any, filter_spec: Any, arguments: Mapping[str, Any]) -> bool:
    if filter_spec is None:
        return True
    if callable(filter_spec):
        return bool(filter_spec(record, arguments))
    for key, expected in filter_spec.items():
        value = get_field(record, key)
        if isinstance(expected, Mapping):
            if not matches(value, expected, arguments):
                return False
        elif value != expected:
            return False
    return True


def _sort_keys(sort: Any) -> List[Tuple[str, bool]]:
    """Normalize a sort specification to (field, descending) pairs."""
    if sort is None:
        return []
    if isinstance(sort, str):
        sort = [sort]
    if isinstance(sort, Mapping):
        return [(str(name), str(direction).lower().startswith("desc")) for name, direction in sort.items()]

    keys = []
    for item in sort:
        if isinstance(item, Mapping):
            keys.extend(_sort_keys(item))
        elif str(item).startswith("-"):
            keys.append((str(item)[1:], True))
        else:
            keys.append((str(item), False))
    return keys


def apply_sort(records: List[Any], sort: Any) -> List[Any]:
    # Stable sorts applied from the last key to the first; None sorts last
    for name, descending in reversed(_sort_keys(sort)):
        present = [r for r in records if get_field(r, name) is not None]
        missing = [r for r in records if get_field(r, name) is None]
        present.sort(key=lambda r: get_field(r, name), reverse=descending)
        records = present + missing
    return records


def apply_select(record: Any, select: Optional[Sequence[str]]) -> Any:
    if select is None:
        return record
    if isinstance(record, Resource):
        return record.with_selection(select)
    if isinstance(record, Mapping):
        return {key: value for key, value in record.items() if key in select}
    return record


class InMemoryDataSource(DataSource):
    """
    DataSource backed by a list of records.

    Records may be mappings, Resources or plain objects. ``load`` is accepted
    as a hint and ignored since everything is already in memory.
    """

    def __init__(self, records: Iterable[Any] = ()):
        self.records: List[Any] = list(records)

    def run(self, query: Query) -> List[Any]:
        found = [r for r in self.records if matches(r, query.filter, query.arguments)]
        found = apply_sort(found, query.sort)
        if query.limit is not None:
            found = found[: query.limit]
        return [apply_select(record, query.select) for record in found]

    def read_one(self, query: Query, context: ExecutionContext) -> Any:
        found = self.run(query)
        return found[0] if found else None

    def read(self, query: Query, context: ExecutionContext) -> List[Any]:
        return self.run(query)
