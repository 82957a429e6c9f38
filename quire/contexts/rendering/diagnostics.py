"""
Compiler diagnostics.

Structured error/warning records returned by the Typst engine, plus the parser
that turns the engine's rendered diagnostic text into those records.

The engine reports diagnostics in the codespan "rich" layout:

    error: unknown variable: foo
      ┌─ main.typ:3:2
      │
    3 │ #foo
      │  ^^^
      │
      = hint: ...

"help:" blocks that follow a diagnostic are its trace items.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

SEVERITIES = ("error", "warning")

HEADER_PATTERN = re.compile(r"^(error|warning|help)(?:\[[^\]]*\])?: ?(.*)$")
LOCATION_PATTERN = re.compile(r"^\s*(?:┌─|╭─|-->)\s*(.+?):(\d+):(\d+)\s*$")
CARET_PATTERN = re.compile(r"^\s*[│|](\s*)(\^+)")
HINT_PATTERN = re.compile(r"^\s*= hint: ?(.*)$")

# Resolves a path as printed by the engine to (display path, source text)
SourceResolver = Callable[[str], Tuple[str, Optional[str]]]


@dataclass(frozen=True)
class Span:
    """Byte range in a source file, with 1-based line/column when known."""

    start: int
    end: int
    line: Optional[int] = None
    column: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start, "end": self.end, "line": self.line, "column": self.column}


@dataclass(frozen=True)
class TraceItem:
    """One frame of the call trace attached to a diagnostic."""

    message: str
    span: Optional[Span] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"span": self.span.to_dict() if self.span else None, "message": self.message}


@dataclass(frozen=True)
class Diagnostic:
    """
    A diagnostic message from the Typst compiler.

    Attributes:
        severity: "error" or "warning"
        message: Compiler message
        span: Location in the offending source, if the compiler reported one
        trace: Call trace, innermost first
        hints: Suggestions attached by the compiler
        path: Source file the span refers to (e.g. "main.typ", "data.typ")
    """

    severity: str
    message: str
    span: Optional[Span] = None
    trace: Tuple[TraceItem, ...] = ()
    hints: Tuple[str, ...] = ()
    path: Optional[str] = None

    def __post_init__(self):
        if self.severity not in SEVERITIES:
            raise ValueError(f"Unknown severity: {self.severity!r}")

    @classmethod
    def error(cls, message: str) -> "Diagnostic":
        """Synthetic error with no source location."""
        return cls(severity="error", message=message)

    @property
    def location(self) -> str:
        """Human-readable "path:line:column" prefix, empty when unknown."""
        if self.span is None or self.span.line is None:
            return self.path or ""
        prefix = f"{self.path}:" if self.path else ""
        return f"{prefix}{self.span.line}:{self.span.column}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity,
            "message": self.message,
            "span": self.span.to_dict() if self.span else None,
            "trace": [item.to_dict() for item in self.trace],
            "hints": list(self.hints),
        }


@dataclass
class CompileResult:
    """
    Result of a successful compilation.

    Attributes:
        page_count: Number of pages in the compiled document
        warnings: Warning diagnostics emitted during compilation
    """

    page_count: int = 0
    warnings: List[Diagnostic] = field(default_factory=list)


def format_diagnostics(diagnostics: List[Diagnostic]) -> str:
    """One line per diagnostic: "  line:column message"."""
    lines = []
    for diagnostic in diagnostics:
        location = diagnostic.location
        lines.append(f"  {location} {diagnostic.message}" if location else f"  {diagnostic.message}")
    return "\n".join(lines)


# =============================================================================
# Engine output parsing
# =============================================================================


@dataclass
class _Block:
    kind: str
    message: str
    location: Optional[Tuple[str, int, int]] = None
    width: int = 0
    hints: List[str] = field(default_factory=list)


def parse_diagnostics(
    text: str,
    default_severity: str = "error",
    resolve_source: Optional[SourceResolver] = None,
) -> List[Diagnostic]:
    """
    Parse rendered engine diagnostics into Diagnostic records.

    Args:
        text: Diagnostic text as produced by the engine
        default_severity: Severity used when the text has no recognizable header
        resolve_source: Maps printed paths to (display path, source text) so
                        line/column can be converted into byte offsets

    Returns:
        Diagnostics in report order; never empty for non-blank text
    """
    blocks = _split_blocks(text)

    if not blocks:
        message = text.strip()
        if not message:
            return []
        return [Diagnostic(severity=default_severity, message=message.splitlines()[0])]

    diagnostics: List[Diagnostic] = []
    pending: Optional[Dict[str, Any]] = None

    for block in blocks:
        path, span = _resolve_span(block, resolve_source)

        if block.kind == "help" and pending is not None:
            pending["trace"].append(TraceItem(message=block.message, span=span))
            pending["hints"].extend(block.hints)
            continue

        if pending is not None:
            diagnostics.append(_finish(pending))

        severity = block.kind if block.kind in SEVERITIES else default_severity
        pending = {
            "severity": severity,
            "message": block.message,
            "span": span,
            "path": path,
            "trace": [],
            "hints": list(block.hints),
        }

    if pending is not None:
        diagnostics.append(_finish(pending))

    return diagnostics


def _finish(pending: Dict[str, Any]) -> Diagnostic:
    return Diagnostic(
        severity=pending["severity"],
        message=pending["message"],
        span=pending["span"],
        path=pending["path"],
        trace=tuple(pending["trace"]),
        hints=tuple(pending["hints"]),
    )


def _split_blocks(text: str) -> List[_Block]:
    blocks: List[_Block] = []

    for line in text.splitlines():
        header = HEADER_PATTERN.match(line)
        if header:
            blocks.append(_Block(kind=header.group(1), message=header.group(2).strip()))
            continue
        if not blocks:
            continue

        current = blocks[-1]
        location = LOCATION_PATTERN.match(line)
        if location and current.location is None:
            current.location = (location.group(1), int(location.group(2)), int(location.group(3)))
            continue

        hint = HINT_PATTERN.match(line)
        if hint:
            current.hints.append(hint.group(1).strip())
            continue

        caret = CARET_PATTERN.match(line)
        if caret and current.width == 0:
            current.width = len(caret.group(2))

    return blocks


def _resolve_span(
    block: _Block, resolve_source: Optional[SourceResolver]
) -> Tuple[Optional[str], Optional[Span]]:
    if block.location is None:
        return None, None

    printed_path, line, column = block.location
    path, source = printed_path, None
    if resolve_source is not None:
        path, source = resolve_source(printed_path)

    if source is None:
        # Without the source text byte offsets cannot be recovered
        return path, Span(start=0, end=0, line=line, column=column)

    start, end = _byte_range(source, line, column, block.width)
    return path, Span(start=start, end=end, line=line, column=column)


def _byte_range(source: str, line: int, column: int, width: int) -> Tuple[int, int]:
    lines = source.split("\n")
    if line < 1 or line > len(lines):
        return 0, 0

    offset = sum(len(text.encode("utf-8")) + 1 for text in lines[: line - 1])
    current = lines[line - 1]
    start = offset + len(current[: column - 1].encode("utf-8"))
    end = start + len(current[column - 1 : column - 1 + width].encode("utf-8"))
    return start, end
