"""Render output."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

from quire.contexts.rendering.diagnostics import Diagnostic


@dataclass
class Document:
    """
    A rendered document.

    Attributes:
        format: pdf, svg or html
        data: PDF bytes, or SVG/HTML text
        page_count: Pages in the compiled document (not the exported subset)
        warnings: Warnings reported while compiling
    """

    format: str
    data: Union[bytes, str]
    page_count: int = 0
    warnings: List[Diagnostic] = field(default_factory=list)

    @property
    def suffix(self) -> str:
        return f".{self.format}"

    def save(self, path: Union[str, Path]) -> Path:
        """Write the document to disk, creating parent directories."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(self.data, bytes):
            path.write_bytes(self.data)
        else:
            path.write_text(self.data, encoding="utf-8")
        return path

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": self.format,
            "data": self.data,
            "page_count": self.page_count,
            "warnings": [warning.to_dict() for warning in self.warnings],
        }
