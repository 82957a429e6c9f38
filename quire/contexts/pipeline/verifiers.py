"""
Declaration verifiers.

Every check runs when a render is compiled, before any data is fetched, and
raises ConfigurationError naming the render and the offending option.
"""

from collections import Counter
from typing import Callable, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from quire.contexts.pipeline.errors import ConfigurationError
from quire.contexts.pipeline.specs import (
    ARGUMENT_TYPES,
    CARDINALITIES,
    DEFAULT_BATCH_SIZE,
    FORMATS,
    NOT_FOUND_ERROR,
    RenderSpec,
    TemplateSpec,
    TypstConfig,
)


# ============================================================================
# Configuration-wide checks
# ============================================================================


def verify_unique_names(config: TypstConfig) -> None:
    for section, names in (
        ("templates", [t.name for t in config.templates]),
        ("renders", [r.name for r in config.renders]),
    ):
        duplicates = sorted(name for name, count in Counter(names).items() if count > 1)
        if duplicates:
            raise ConfigurationError(f"Duplicate {section[:-1]} name(s): {', '.join(duplicates)}", path=(section,))


def verify_template(template: TemplateSpec) -> None:
    """A template declares exactly one of markup and source."""
    if (template.markup is not None) == (template.source is not None):
        raise ConfigurationError(
            f"Template '{template.name}' must declare exactly one of `markup` or `source`",
            path=("templates", template.name),
        )


def verify_encoding(config: TypstConfig) -> None:
    timezone = config.encoding.get("timezone")
    if timezone is None:
        return
    try:
        ZoneInfo(str(timezone))
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigurationError(f"Unknown timezone '{timezone}'", path=("encoding", "timezone")) from None


def verify_config(config: TypstConfig) -> None:
    verify_unique_names(config)
    for template in config.templates:
        verify_template(template)
    verify_encoding(config)


# ============================================================================
# Per-render checks
# ============================================================================


def verify_template_ref(render: RenderSpec, config: TypstConfig) -> None:
    if config.template(render.template) is None:
        declared = ", ".join(sorted(t.name for t in config.templates)) or "(none)"
        raise ConfigurationError(
            f"Render references template '{render.template}' but no template with that name is "
            f"declared. Declared templates: {declared}",
            render=render.name,
            path=("renders", render.name, "template"),
        )
    try:
        verify_template(config.template(render.template))
    except ConfigurationError as e:
        raise ConfigurationError(e.message, render=render.name, path=("renders", render.name, "template")) from e


def verify_format_options(render: RenderSpec, config: TypstConfig) -> None:
    path = ("renders", render.name)
    if render.format not in FORMATS:
        raise ConfigurationError(
            f"Unknown format '{render.format}' (expected one of {', '.join(FORMATS)})",
            render=render.name,
            path=path + ("format",),
        )
    if render.page is not None and render.format != "svg":
        raise ConfigurationError(
            f"`page` option is only valid when `format` is `svg`, but format is `{render.format}`",
            render=render.name,
            path=path + ("page",),
        )
    if render.pdf_options is not None and render.format != "pdf":
        raise ConfigurationError(
            f"`pdf_options` is only valid when `format` is `pdf`, but format is `{render.format}`",
            render=render.name,
            path=path + ("pdf_options",),
        )
    if render.page is not None and (not isinstance(render.page, int) or render.page < 0):
        raise ConfigurationError(
            f"`page` must be a non-negative integer, got {render.page!r}",
            render=render.name,
            path=path + ("page",),
        )
    if render.pdf_options is not None:
        try:
            render.pdf_options.engine_standards()
        except ValueError as e:
            raise ConfigurationError(str(e), render=render.name, path=path + ("pdf_options",)) from None


def verify_read_options(render: RenderSpec, config: TypstConfig) -> None:
    read = render.read
    if read is None:
        return

    path = ("renders", render.name, "read")
    if read.cardinality not in CARDINALITIES:
        raise ConfigurationError(
            f"Unknown read cardinality '{read.cardinality}' (expected one or many)",
            render=render.name,
            path=path,
        )
    if read.not_found not in (NOT_FOUND_ERROR, None):
        raise ConfigurationError(
            f"`not_found` must be '{NOT_FOUND_ERROR}' or null, got {read.not_found!r}",
            render=render.name,
            path=path,
        )
    if not isinstance(read.batch_size, int) or read.batch_size < 1:
        raise ConfigurationError(
            f"`batch_size` must be a positive integer, got {read.batch_size!r}",
            render=render.name,
            path=path,
        )
    if read.limit is not None and (not isinstance(read.limit, int) or read.limit < 1):
        raise ConfigurationError(
            f"`limit` must be a positive integer, got {read.limit!r}", render=render.name, path=path
        )

    if read.cardinality == "one":
        if read.limit is not None:
            raise ConfigurationError("`read one` does not support `limit`", render=render.name, path=path)
        if read.batch_size != DEFAULT_BATCH_SIZE:
            raise ConfigurationError("`read one` does not support `batch_size`", render=render.name, path=path)
    elif read.not_found != NOT_FOUND_ERROR:
        raise ConfigurationError("`read many` does not support `not_found`", render=render.name, path=path)


def verify_arguments(render: RenderSpec, config: TypstConfig) -> None:
    path = ("renders", render.name, "arguments")
    duplicates = sorted(name for name, count in Counter(render.argument_names).items() if count > 1)
    if duplicates:
        raise ConfigurationError(
            f"Duplicate argument name(s): {', '.join(duplicates)}", render=render.name, path=path
        )
    for argument in render.arguments:
        if argument.type not in ARGUMENT_TYPES:
            raise ConfigurationError(
                f"Argument '{argument.name}' has unknown type '{argument.type}' "
                f"(expected one of {', '.join(ARGUMENT_TYPES)})",
                render=render.name,
                path=path,
            )


RENDER_VERIFIERS: List[Callable[[RenderSpec, TypstConfig], None]] = [
    verify_template_ref,
    verify_format_options,
    verify_read_options,
    verify_arguments,
]


def verify_render(render: RenderSpec, config: TypstConfig) -> None:
    """Run every per-render check, raising on the first failure."""
    for verifier in RENDER_VERIFIERS:
        verifier(render, config)
