"""
QUIRE - Typst document rendering from structured application data

Encodes Python values as Typst literals, keeps a reusable compilation session
hot across render passes, and runs declarative render pipelines.

Architecture:
- Encoding Context: Python values -> Typst literal source text
- Rendering Context: Session (virtual files, inputs, fonts, compiled document)
- Pipeline Context: Declared renders compiled into fetch -> inject -> compile -> export
"""

from quire.contexts.encoding import EncodingContext, Encodable, Resource, encode
from quire.contexts.rendering import (
    CompileError,
    CompileResult,
    Diagnostic,
    Session,
    font_families,
)

__version__ = "0.1.0"

__all__ = [
    "encode",
    "EncodingContext",
    "Encodable",
    "Resource",
    "Session",
    "CompileResult",
    "CompileError",
    "Diagnostic",
    "font_families",
]
