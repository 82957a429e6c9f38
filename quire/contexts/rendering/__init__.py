"""
Rendering Context

Responsibilities:
- Holds markup, virtual files and inputs between render passes
- Discovers fonts once per session
- Compiles through the Typst engine and caches the compiled document
- Exports SVG pages, PDF (page ranges, standards, document id) and HTML
- Translates engine output into structured diagnostics

Owns: Session state, compiled document, engine boundary, diagnostics
Never: Fetches application data or decides what a template contains
"""

from quire.contexts.rendering.diagnostics import CompileResult, Diagnostic, Span, TraceItem
from quire.contexts.rendering.engine import Engine, TypstEngine, WorldSnapshot
from quire.contexts.rendering.exceptions import CompileError, FontDiscoveryError, QuireError
from quire.contexts.rendering.fonts import FontBook, font_families
from quire.contexts.rendering.pdf import PDF_STANDARDS, PdfOptions
from quire.contexts.rendering.session import CompiledDocument, Session
from quire.contexts.rendering.streaming import stream_virtual_file

__all__ = [
    "Session",
    "CompiledDocument",
    "CompileResult",
    "CompileError",
    "FontDiscoveryError",
    "QuireError",
    "Diagnostic",
    "Span",
    "TraceItem",
    "Engine",
    "TypstEngine",
    "WorldSnapshot",
    "FontBook",
    "font_families",
    "PdfOptions",
    "PDF_STANDARDS",
    "stream_virtual_file",
]
