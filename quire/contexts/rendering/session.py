"""
Compilation Session

A Session owns everything one document needs between render passes:
- the main markup
- named virtual files (byte buffers shadowing files under the root)
- named string inputs, visible to templates as ``sys.inputs``
- the font table, discovered once at creation
- at most one compiled document

Replacing the markup or a virtual file drops the compiled document; appending
to a virtual file and changing inputs do not, so a caller can stage data
incrementally and compile once. All public operations hold the session lock.
"""

import os
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from dotenv import load_dotenv

from quire.contexts.rendering.diagnostics import CompileResult, Diagnostic
from quire.contexts.rendering.engine import Engine, TypstEngine, WorldSnapshot
from quire.contexts.rendering.exceptions import CompileError
from quire.contexts.rendering.fonts import FontBook
from quire.contexts.rendering.logger import (
    _log_warning,
    log_compile_failure,
    log_compile_result,
    log_compile_start,
    log_export,
    log_session_created,
)
from quire.contexts.rendering.pdf import PdfOptions, parse_page_ranges, postprocess_pdf
from quire.contexts.rendering.streaming import DEFAULT_BATCH_SIZE, stream_virtual_file

load_dotenv()

DEFAULT_ROOT = Path(os.getenv("QUIRE_ROOT", "."))
DEFAULT_FONT_PATHS = [Path(p) for p in os.getenv("QUIRE_FONT_PATHS", "").split(os.pathsep) if p]
DEFAULT_IGNORE_SYSTEM_FONTS = os.getenv("QUIRE_IGNORE_SYSTEM_FONTS", "false").lower() == "true"

Content = Union[str, bytes, bytearray]


@dataclass
class CompiledDocument:
    """
    Result of a successful compile, kept until the session is invalidated.

    Attributes:
        pages: One SVG document per page
        warnings: Warnings reported by the engine
        world: Snapshot the document was compiled from
    """

    pages: List[str]
    warnings: List[Diagnostic] = field(default_factory=list)
    world: Optional[WorldSnapshot] = None
    _pdf_cache: Dict[Tuple[str, ...], bytes] = field(default_factory=dict, repr=False)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def pdf(self, engine: Engine, standards: Sequence[str]) -> bytes:
        """Full-document PDF for a standards set, exported once per set."""
        key = tuple(sorted(standards))
        if key not in self._pdf_cache:
            self._pdf_cache[key] = engine.export_pdf(self.world, list(key))
        return self._pdf_cache[key]


def normalize_path(path: str) -> str:
    """
    Normalize a virtual file path to a POSIX path relative to the root.

    Raises:
        ValueError: Empty path or a path escaping the root
    """
    if not isinstance(path, str):
        raise TypeError(f"Virtual file path must be a string, got {type(path).__name__}")

    pure = PurePosixPath(path.replace("\\", "/").lstrip("/"))
    if ".." in pure.parts:
        raise ValueError(f"Virtual file path escapes the root: {path}")
    if not pure.parts:
        raise ValueError(f"Virtual file path is empty: {path!r}")
    return str(pure)


def _to_bytes(content: Content) -> bytes:
    if isinstance(content, str):
        return content.encode("utf-8")
    if isinstance(content, (bytes, bytearray)):
        return bytes(content)
    raise TypeError(f"Virtual file content must be str or bytes, got {type(content).__name__}")


def _check_input(key: Any, value: Any) -> None:
    if not isinstance(key, str) or not isinstance(value, str):
        raise TypeError(
            f"Inputs must map strings to strings, got {type(key).__name__} -> {type(value).__name__}"
        )


class Session:
    """
    Reusable Typst compilation session.

    Example:
        with Session(root="templates") as session:
            session.set_markup('#import "data.typ": record\\n= #record.title')
            session.set_virtual_file("data.typ", encode_binding("record", invoice))
            session.compile()
            pdf = session.export_pdf(pages="1")
    """

    def __init__(
        self,
        root: Union[str, Path, None] = None,
        font_paths: Optional[Iterable[Union[str, Path]]] = None,
        ignore_system_fonts: Optional[bool] = None,
        engine: Optional[Engine] = None,
    ):
        """
        Create a session and discover its fonts.

        Args:
            root: Directory imports and assets resolve against (default QUIRE_ROOT)
            font_paths: Extra font directories (default QUIRE_FONT_PATHS)
            ignore_system_fonts: Skip system fonts (default QUIRE_IGNORE_SYSTEM_FONTS)
            engine: Compiler backend (default TypstEngine)

        Raises:
            FontDiscoveryError: A configured font path does not exist
        """
        start_time = time.time()

        self.root = Path(root) if root is not None else DEFAULT_ROOT
        self.font_paths: Tuple[Path, ...] = tuple(
            Path(p) for p in (font_paths if font_paths is not None else DEFAULT_FONT_PATHS)
        )
        self.ignore_system_fonts = (
            DEFAULT_IGNORE_SYSTEM_FONTS if ignore_system_fonts is None else bool(ignore_system_fonts)
        )
        self._fonts: Optional[FontBook] = FontBook.discover(self.font_paths, self.ignore_system_fonts)
        self._owns_engine = engine is None
        self.engine = engine if engine is not None else TypstEngine(
            fonts=self._fonts.fonts, ignore_system_fonts=self.ignore_system_fonts
        )

        self._lock = threading.RLock()
        self._markup = ""
        self._files: Dict[str, bytearray] = {}
        self._inputs: Dict[str, str] = {}
        self._document: Optional[CompiledDocument] = None
        self._closed = False

        log_session_created(self.root, len(self._fonts.families), time.time() - start_time)

    # ============================================================================
    # Lifecycle
    # ============================================================================

    def close(self) -> None:
        """Release fonts, virtual files, the compiled document and an engine the session created."""
        with self._lock:
            if self._owns_engine and not self._closed:
                self.engine.close()
            self._fonts = None
            self._files.clear()
            self._inputs.clear()
            self._document = None
            self._closed = True

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Session is closed")

    # ============================================================================
    # Markup, virtual files and inputs
    # ============================================================================

    def set_markup(self, text: str) -> None:
        """Replace the main document source. Drops the compiled document."""
        if not isinstance(text, str):
            raise TypeError(f"Markup must be a string, got {type(text).__name__}")
        with self._lock:
            self._ensure_open()
            self._markup = text
            self._document = None

    def set_virtual_file(self, path: str, content: Content) -> None:
        """Create or replace a virtual file. Drops the compiled document."""
        path = normalize_path(path)
        data = _to_bytes(content)
        with self._lock:
            self._ensure_open()
            self._files[path] = bytearray(data)
            self._document = None

    def append_virtual_file(self, path: str, chunk: Content) -> None:
        """
        Append to a virtual file, creating it if needed.

        The compiled document is kept: a series of appends is expected to be
        followed by an explicit compile().
        """
        path = normalize_path(path)
        data = _to_bytes(chunk)
        with self._lock:
            self._ensure_open()
            self._files.setdefault(path, bytearray()).extend(data)

    def clear_virtual_file(self, path: str) -> None:
        """Remove a virtual file if present. Drops the compiled document."""
        path = normalize_path(path)
        with self._lock:
            self._ensure_open()
            self._files.pop(path, None)
            self._document = None

    def set_input(self, key: str, value: str) -> None:
        """Set one ``sys.inputs`` entry."""
        _check_input(key, value)
        with self._lock:
            self._ensure_open()
            self._inputs[key] = value

    def set_inputs(self, inputs: Mapping[str, str]) -> None:
        """Replace all ``sys.inputs`` entries."""
        for key, value in inputs.items():
            _check_input(key, value)
        with self._lock:
            self._ensure_open()
            self._inputs = dict(inputs)

    def stream_virtual_file(
        self,
        path: str,
        items: Iterable[Any],
        variable_name: str = "data",
        context=None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> int:
        """
        Stream items into a virtual file as ``#let <variable_name> = (...)``.

        The session lock is held for the whole stream, so no other thread sees
        a partially written file.

        Returns:
            Number of items written
        """
        with self._lock:
            self._ensure_open()
            return stream_virtual_file(self, path, items, variable_name, context, batch_size)

    # ============================================================================
    # Introspection
    # ============================================================================

    @property
    def markup(self) -> str:
        with self._lock:
            return self._markup

    @property
    def inputs(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._inputs)

    @property
    def compiled(self) -> bool:
        """Whether a compiled document is available for render/export."""
        with self._lock:
            return self._document is not None

    def virtual_file(self, path: str) -> Optional[str]:
        """Content of a virtual file as text, or None if absent."""
        path = normalize_path(path)
        with self._lock:
            data = self._files.get(path)
            return data.decode("utf-8", errors="replace") if data is not None else None

    def virtual_paths(self) -> List[str]:
        with self._lock:
            return sorted(self._files)

    def font_families(self) -> List[str]:
        """Font families discovered when the session was created."""
        with self._lock:
            self._ensure_open()
            return self._fonts.family_names()

    def _snapshot(self) -> WorldSnapshot:
        return WorldSnapshot(
            root=self.root,
            markup=self._markup,
            files={path: bytes(data) for path, data in self._files.items()},
            inputs=dict(self._inputs),
        )

    # ============================================================================
    # Compile and export
    # ============================================================================

    def compile(self) -> CompileResult:
        """
        Compile the current markup, files and inputs.

        On success the compiled document replaces any previous one. On failure
        the previous document (if any) is left as it was.

        Returns:
            CompileResult with page count and warnings

        Raises:
            CompileError: The document does not compile
        """
        with self._lock:
            self._ensure_open()
            world = self._snapshot()
            log_compile_start(len(world.markup), len(world.files), len(world.inputs))

            start_time = time.time()
            try:
                pages, warnings = self.engine.compile_pages(world)
            except CompileError as e:
                log_compile_failure(e, time.time() - start_time)
                raise

            self._document = CompiledDocument(pages=list(pages), warnings=list(warnings), world=world)
            result = CompileResult(page_count=self._document.page_count, warnings=list(warnings))
            log_compile_result(result, time.time() - start_time)
            return result

    def render_svg(self, page: int = 0) -> str:
        """
        SVG of one page of the compiled document.

        Args:
            page: 0-based page index

        Raises:
            CompileError: Nothing compiled yet, or page out of range
        """
        with self._lock:
            document = self._require_document()
            if isinstance(page, bool) or not isinstance(page, int) or not 0 <= page < document.page_count:
                raise CompileError.from_message(
                    f"Page index {page} out of bounds (document has {document.page_count} pages)"
                )
            return document.pages[page]

    def export_pdf(self, options: Union[PdfOptions, Mapping[str, Any], None] = None, **kwargs) -> bytes:
        """
        Export the compiled document as PDF.

        Args:
            options: PdfOptions or mapping with pages, pdf_standards, document_id
            **kwargs: Same options as keywords, overriding ``options``

        Returns:
            PDF bytes

        Raises:
            CompileError: Nothing compiled yet, invalid options, or export failure
        """
        options = PdfOptions.coerce(options, **kwargs)

        with self._lock:
            document = self._require_document()
            try:
                standards = options.engine_standards()
                page_indices = (
                    parse_page_ranges(options.pages, document.page_count)
                    if options.pages is not None
                    else None
                )
            except ValueError as e:
                raise CompileError.from_message(str(e)) from e

            start_time = time.time()
            pdf = postprocess_pdf(
                document.pdf(self.engine, standards),
                page_indices=page_indices,
                document_id=options.document_id,
            )
            log_export("pdf", len(pdf), time.time() - start_time)
            return pdf

    def export_html(self) -> str:
        """
        Compile the current state as HTML.

        Independent of compile(): the compiled document is neither read nor
        replaced.

        Raises:
            CompileError: Compilation or export failed
        """
        with self._lock:
            self._ensure_open()
            start_time = time.time()
            html = self.engine.export_html(self._snapshot())
            log_export("html", len(html), time.time() - start_time)
            return html

    def _require_document(self) -> CompiledDocument:
        self._ensure_open()
        if self._document is None:
            _log_warning("Render requested before compile()")
            raise CompileError.from_message("No compiled document. Call compile() first.")
        return self._document

    def __repr__(self) -> str:
        state = "closed" if self._closed else ("compiled" if self._document is not None else "dirty")
        return f"Session(root={str(self.root)!r}, files={len(self._files)}, {state})"
