"""Shared fixtures: a deterministic engine so unit tests never need typst."""

import io
from typing import List, Sequence, Tuple

import pytest
from PyPDF2 import PdfWriter

from quire.contexts.rendering import CompileError, Diagnostic, Engine, Session, WorldSnapshot

PAGE_BREAK = "#pagebreak()"
FAIL_MARKER = "#panic"
WARN_MARKER = "#warn"


class FakeEngine(Engine):
    """
    Engine stand-in.

    - pages are the markup split on #pagebreak()
    - markup containing #panic fails with one error diagnostic
    - markup containing #warn compiles with one warning
    - every call records the snapshot it was given
    - close() is recorded in ``closed``
    """

    def __init__(self):
        self.compiled: List[WorldSnapshot] = []
        self.pdf_exports: List[Tuple[WorldSnapshot, Tuple[str, ...]]] = []
        self.html_exports: List[WorldSnapshot] = []
        self.closed = False

    def _check(self, world: WorldSnapshot) -> None:
        if FAIL_MARKER in world.markup:
            raise CompileError([Diagnostic(severity="error", message="panicked", path="main.typ")])

    def compile_pages(self, world: WorldSnapshot):
        self.compiled.append(world)
        self._check(world)
        pages = [f"<svg><!-- page {i} -->{chunk.strip()}</svg>" for i, chunk in enumerate(world.markup.split(PAGE_BREAK))]
        warnings = [Diagnostic(severity="warning", message="unused")] if WARN_MARKER in world.markup else []
        return pages, warnings

    def export_pdf(self, world: WorldSnapshot, standards: Sequence[str] = ()) -> bytes:
        self.pdf_exports.append((world, tuple(standards)))
        self._check(world)
        writer = PdfWriter()
        for _ in world.markup.split(PAGE_BREAK):
            writer.add_blank_page(width=200, height=300)
        output = io.BytesIO()
        writer.write(output)
        return output.getvalue()

    def export_html(self, world: WorldSnapshot) -> str:
        self.html_exports.append(world)
        self._check(world)
        return f"<html><body>{world.markup}</body></html>"

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def session(tmp_path, fake_engine):
    with Session(root=tmp_path, ignore_system_fonts=True, engine=fake_engine) as session:
        yield session
