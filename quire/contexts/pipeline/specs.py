"""
Render declarations.

Frozen descriptions of templates and renders. Declarations are plain data:
they are checked by the verifiers and turned into runnable pipelines by
``compile_render``. Each spec can be built from a plain mapping (as loaded
from YAML) with ``from_dict``.
"""

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from quire.contexts.pipeline.errors import ArgumentError, ConfigurationError
from quire.contexts.rendering.pdf import PdfOptions

FORMATS = ("pdf", "svg", "html")
CARDINALITIES = ("one", "many")
ARGUMENT_TYPES = ("str", "int", "float", "bool", "decimal", "date", "datetime", "any")

DEFAULT_DATA_FILE = "data.typ"
DEFAULT_BATCH_SIZE = 100
NOT_FOUND_ERROR = "error"

TRUE_STRINGS = {"true", "yes", "1", "on"}
FALSE_STRINGS = {"false", "no", "0", "off"}


def _check_keys(data: Mapping[str, Any], allowed: Sequence[str], path: Tuple[str, ...]) -> None:
    unknown = set(data) - set(allowed)
    if unknown:
        raise ConfigurationError(
            f"Unknown option(s): {', '.join(sorted(unknown))} (expected {', '.join(allowed)})",
            path=path,
        )


def _field_names(cls) -> List[str]:
    return [f.name for f in fields(cls)]


# ============================================================================
# Templates
# ============================================================================


@dataclass(frozen=True)
class TemplateSpec:
    """
    Typst source a render compiles.

    Attributes:
        name: Unique template identifier
        markup: Inline Typst markup
        source: File path relative to the configured root
        inputs: Static sys.inputs key/value pairs
    """

    name: str
    markup: Optional[str] = None
    source: Optional[str] = None
    inputs: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "TemplateSpec":
        path = ("templates", name)
        if isinstance(data, str):
            # Shorthand: a bare string is inline markup
            return cls(name=name, markup=data)
        _check_keys(data, ["markup", "source", "inputs"], path)

        inputs = data.get("inputs") or {}
        if not isinstance(inputs, Mapping):
            raise ConfigurationError("Template inputs must be a mapping", path=path + ("inputs",))

        return cls(
            name=name,
            markup=data.get("markup"),
            source=data.get("source"),
            inputs={str(key): str(value) for key, value in inputs.items()},
        )


# ============================================================================
# Reads and arguments
# ============================================================================


@dataclass(frozen=True)
class ReadSpec:
    """
    How a render fetches its data.

    Attributes:
        cardinality: "one" binds ``record``, "many" streams ``records``
        filter: Callable (record, args) -> bool, or mapping of field -> value;
                string values "^arg:name" refer to invocation arguments
        load: Relationships/calculations to load (a hint for the data source)
        select: Attributes to select (None = all)
        sort: Field name ("-field" for descending), list of those, or mapping field -> asc/desc
        limit: Maximum number of records (many only)
        batch_size: Records encoded per append while streaming (many only)
        not_found: "error" raises FetchNotFound; None binds ``record`` to none (one only)
    """

    cardinality: str
    filter: Any = None
    load: Tuple[str, ...] = ()
    select: Optional[Tuple[str, ...]] = None
    sort: Any = None
    limit: Optional[int] = None
    batch_size: int = DEFAULT_BATCH_SIZE
    not_found: Optional[str] = NOT_FOUND_ERROR

    def __post_init__(self):
        object.__setattr__(self, "load", tuple(self.load or ()))
        if self.select is not None:
            object.__setattr__(self, "select", tuple(self.select))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], path: Tuple[str, ...] = ("read",)) -> "ReadSpec":
        _check_keys(data, _field_names(cls), path)
        if "cardinality" not in data:
            raise ConfigurationError("read requires a cardinality (one or many)", path=path)
        return cls(**data)


@dataclass(frozen=True)
class ArgumentSpec:
    """
    Invocation argument of a render, exposed to templates as ``args``.

    Attributes:
        name: Argument name
        type: One of str, int, float, bool, decimal, date, datetime, any
        allow_nil: Whether None is an acceptable value
        default: Value used when the argument is not supplied
    """

    name: str
    type: str = "any"
    allow_nil: bool = True
    default: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], path: Tuple[str, ...] = ("arguments",)) -> "ArgumentSpec":
        if isinstance(data, str):
            return cls(name=data)
        _check_keys(data, _field_names(cls), path)
        if "name" not in data:
            raise ConfigurationError("Argument requires a name", path=path)
        return cls(**data)

    def coerce(self, value: Any) -> Any:
        """
        Convert a supplied value to the declared type.

        Strings (as given on a command line) are parsed; values that already
        have the declared type pass through.

        Raises:
            ArgumentError: The value cannot be converted
        """
        if value is None:
            if not self.allow_nil:
                raise ArgumentError("Argument does not allow nil", argument=self.name)
            return None

        try:
            return _COERCERS[self.type](value)
        except (TypeError, ValueError, InvalidOperation) as e:
            raise ArgumentError(
                f"Cannot convert {value!r} to {self.type}: {e}", argument=self.name
            ) from None


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    raise ValueError("expected a boolean")


def _to_int(value: Any) -> int:
    if isinstance(value, bool) or isinstance(value, float) and not value.is_integer():
        raise ValueError("expected an integer")
    return int(value)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _to_str(value: Any) -> str:
    if not isinstance(value, (str, int, float, Decimal)) or isinstance(value, bool):
        raise TypeError(f"expected a string, got {type(value).__name__}")
    return str(value)


_COERCERS: Dict[str, Callable[[Any], Any]] = {
    "str": _to_str,
    "int": _to_int,
    "float": float,
    "bool": _to_bool,
    "decimal": _to_decimal,
    "date": _to_date,
    "datetime": _to_datetime,
    "any": lambda value: value,
}


# ============================================================================
# Renders
# ============================================================================


@dataclass(frozen=True)
class RenderSpec:
    """
    A named render: template + format + optional read + export options.

    Attributes:
        name: Render name
        template: Name of a declared TemplateSpec
        format: pdf, svg or html
        page: Page to render (svg only, default 0)
        read: Data fetch description (None = arguments only)
        pdf_options: Export options (pdf only)
        arguments: Declared invocation arguments
        data_file: Virtual file the data is written to
        description: Human-readable summary
        validations: Callables run against the bound arguments before fetch;
                     each raises ArgumentError or returns an error message (None = ok)
    """

    name: str
    template: str
    format: str = "pdf"
    page: Optional[int] = None
    read: Optional[ReadSpec] = None
    pdf_options: Optional[PdfOptions] = None
    arguments: Tuple[ArgumentSpec, ...] = ()
    data_file: str = DEFAULT_DATA_FILE
    description: Optional[str] = None
    validations: Tuple[Callable[[Dict[str, Any]], Optional[str]], ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "arguments", tuple(self.arguments))
        object.__setattr__(self, "validations", tuple(self.validations))
        if isinstance(self.read, Mapping):
            object.__setattr__(self, "read", ReadSpec.from_dict(self.read))
        if isinstance(self.pdf_options, Mapping):
            object.__setattr__(self, "pdf_options", PdfOptions.coerce(self.pdf_options))

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "RenderSpec":
        path = ("renders", name)
        _check_keys(data, [n for n in _field_names(cls) if n not in ("name", "validations")], path)
        if "template" not in data:
            raise ConfigurationError("Render requires a template", render=name, path=path)

        options = dict(data)
        if options.get("read") is not None:
            options["read"] = ReadSpec.from_dict(options["read"], path + ("read",))
        if options.get("pdf_options") is not None:
            try:
                options["pdf_options"] = PdfOptions.coerce(options["pdf_options"])
            except TypeError as e:
                raise ConfigurationError(str(e), render=name, path=path + ("pdf_options",)) from None
        options["arguments"] = tuple(
            ArgumentSpec.from_dict(argument, path + ("arguments",))
            for argument in options.get("arguments") or ()
        )
        return cls(name=name, **options)

    @property
    def argument_names(self) -> List[str]:
        return [argument.name for argument in self.arguments]


# ============================================================================
# Configuration
# ============================================================================


@dataclass(frozen=True)
class TypstConfig:
    """
    Everything a set of renders shares.

    Attributes:
        root: Directory template sources and imports resolve against
        font_paths: Extra font directories
        ignore_system_fonts: Skip system fonts
        templates: Declared templates
        renders: Declared renders
        encoding: Encoding options for injected data (e.g. {"timezone": "Europe/Paris"})
    """

    root: Path = Path(".")
    font_paths: Tuple[Path, ...] = ()
    ignore_system_fonts: bool = False
    templates: Tuple[TemplateSpec, ...] = ()
    renders: Tuple[RenderSpec, ...] = ()
    encoding: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "root", Path(self.root))
        object.__setattr__(self, "font_paths", tuple(Path(p) for p in self.font_paths))
        object.__setattr__(self, "templates", tuple(self.templates))
        object.__setattr__(self, "renders", tuple(self.renders))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], base_dir: Optional[Path] = None) -> "TypstConfig":
        """
        Build a configuration from a plain mapping.

        Templates and renders are mappings of name -> declaration. Relative
        root and font paths are resolved against ``base_dir`` when given.
        """
        _check_keys(data, _field_names(cls), ())

        def resolve(path: Any) -> Path:
            path = Path(path)
            return base_dir / path if base_dir is not None and not path.is_absolute() else path

        templates = data.get("templates") or {}
        renders = data.get("renders") or {}
        for section, value in (("templates", templates), ("renders", renders)):
            if not isinstance(value, Mapping):
                raise ConfigurationError(f"'{section}' must be a mapping of name -> declaration", path=(section,))

        return cls(
            root=resolve(data.get("root") or "."),
            font_paths=tuple(resolve(p) for p in data.get("font_paths") or ()),
            ignore_system_fonts=bool(data.get("ignore_system_fonts", False)),
            templates=tuple(TemplateSpec.from_dict(str(n), t) for n, t in templates.items()),
            renders=tuple(RenderSpec.from_dict(str(n), r or {}) for n, r in renders.items()),
            encoding=dict(data.get("encoding") or {}),
        )

    def template(self, name: str) -> Optional[TemplateSpec]:
        for template in self.templates:
            if template.name == name:
                return template
        return None
