"""Unit tests for diagnostic records and engine output parsing."""

import pytest

from quire.contexts.rendering import CompileError, Diagnostic, Span
from quire.contexts.rendering.diagnostics import format_diagnostics, parse_diagnostics

SOURCE = "= Title\n#let x = 1\n#foo(x)\n"

ERROR_TEXT = """\
error: unknown variable: foo
  ┌─ main.typ:3:2
  │
3 │ #foo(x)
  │  ^^^
  │
  = hint: if you meant to use a function, call it
"""

TRACE_TEXT = """\
error: expected integer, found string
  ┌─ lib.typ:1:9
  │
1 │ #let f(x) = x + 1
  │         ^^^^^

help: error occurred in this call of function `f`
  ┌─ main.typ:2:2
  │
2 │ #f("a")
  │  ^^^^^^
"""


def resolver(path):
    sources = {"main.typ": SOURCE, "lib.typ": "#let f(x) = x + 1\n"}
    return path, sources.get(path)


@pytest.mark.unit
def test_parse_error_with_location_and_hint():
    """Test message, line/column, byte span and hints are recovered."""
    (diagnostic,) = parse_diagnostics(ERROR_TEXT, resolve_source=resolver)

    assert diagnostic.severity == "error"
    assert diagnostic.message == "unknown variable: foo"
    assert diagnostic.path == "main.typ"
    assert diagnostic.span == Span(start=20, end=23, line=3, column=2)
    assert SOURCE.encode("utf-8")[diagnostic.span.start : diagnostic.span.end] == b"foo"
    assert diagnostic.hints == ("if you meant to use a function, call it",)


@pytest.mark.unit
def test_help_blocks_become_trace_items():
    (diagnostic,) = parse_diagnostics(TRACE_TEXT, resolve_source=resolver)

    assert diagnostic.message == "expected integer, found string"
    assert len(diagnostic.trace) == 1
    assert diagnostic.trace[0].message == "error occurred in this call of function `f`"
    assert diagnostic.trace[0].span.line == 2


@pytest.mark.unit
def test_span_without_source_keeps_line_and_column():
    (diagnostic,) = parse_diagnostics(ERROR_TEXT)

    assert diagnostic.span.line == 3
    assert diagnostic.span.column == 2
    assert diagnostic.span.start == 0


@pytest.mark.unit
def test_multibyte_source_offsets_are_bytes():
    """Test byte offsets count UTF-8 bytes, not characters."""
    source = "é #oops\n"
    text = "error: bad\n  ┌─ main.typ:1:3\n  │\n1 │ é #oops\n  │    ^^^^^\n"

    (diagnostic,) = parse_diagnostics(text, resolve_source=lambda p: (p, source))

    assert diagnostic.span.start == 3
    assert source.encode("utf-8")[diagnostic.span.start : diagnostic.span.end] == b"#oops"


@pytest.mark.unit
def test_multiple_diagnostics_and_warnings():
    text = "warning: unused import\n  ┌─ main.typ:1:1\n\nerror: boom\n"

    diagnostics = parse_diagnostics(text)

    assert [d.severity for d in diagnostics] == ["warning", "error"]
    assert diagnostics[1].span is None


@pytest.mark.unit
def test_unstructured_text_falls_back_to_first_line():
    (diagnostic,) = parse_diagnostics("something went wrong\ndetails", default_severity="warning")
    assert diagnostic.severity == "warning"
    assert diagnostic.message == "something went wrong"
    assert parse_diagnostics("   ") == []


@pytest.mark.unit
def test_diagnostic_to_dict_shape():
    diagnostic = Diagnostic(severity="error", message="bad", span=Span(1, 4, 1, 2), hints=("try this",))

    assert diagnostic.to_dict() == {
        "severity": "error",
        "message": "bad",
        "span": {"start": 1, "end": 4, "line": 1, "column": 2},
        "trace": [],
        "hints": ["try this"],
    }


@pytest.mark.unit
def test_invalid_severity_rejected():
    with pytest.raises(ValueError):
        Diagnostic(severity="fatal", message="x")


@pytest.mark.unit
def test_compile_error_message_lists_locations():
    error = CompileError(
        [
            Diagnostic(severity="error", message="first", span=Span(0, 1, 2, 5), path="main.typ"),
            Diagnostic.error("second"),
        ]
    )

    assert str(error).startswith("Typst compilation failed:")
    assert "  main.typ:2:5 first" in str(error)
    assert "  second" in format_diagnostics(error.diagnostics)
    assert len(error.errors) == 2


@pytest.mark.unit
def test_compile_error_never_empty():
    assert len(CompileError([]).diagnostics) == 1
    assert CompileError.from_message("nope").diagnostics[0].span is None
