"""Exceptions raised by the rendering context."""

from pathlib import Path
from typing import Iterable, List, Optional

from quire.contexts.rendering.diagnostics import Diagnostic, format_diagnostics


class QuireError(Exception):
    """Base class for every error QUIRE raises on purpose."""


class CompileError(QuireError):
    """
    Exception raised when the engine rejects the document or an export cannot proceed.

    Attributes:
        diagnostics: One or more diagnostics describing the failure
    """

    def __init__(self, diagnostics: Iterable[Diagnostic]):
        self.diagnostics: List[Diagnostic] = list(diagnostics)
        if not self.diagnostics:
            self.diagnostics = [Diagnostic.error("Typst compilation failed")]

        super().__init__(f"Typst compilation failed:\n{format_diagnostics(self.diagnostics)}")

    @classmethod
    def from_message(cls, message: str) -> "CompileError":
        """Error carrying a single synthetic diagnostic without a span."""
        return cls([Diagnostic.error(message)])

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == "error"]


class FontDiscoveryError(QuireError):
    """
    Exception raised when a session cannot build its font table.

    Attributes:
        message: Error description
        font_path: The font directory that could not be searched
    """

    def __init__(self, message: str, font_path: Optional[Path] = None):
        self.message = message
        self.font_path = font_path

        parts = [message]
        if font_path is not None:
            parts.append(f"Font path: {font_path}")

        super().__init__("\n".join(parts))
