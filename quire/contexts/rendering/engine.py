"""
Typst Engine Adapter

The compiler itself is an external collaborator. Sessions talk to it through
the small ``Engine`` interface below; ``TypstEngine`` implements it with the
``typst`` Python bindings.

A TypstEngine belongs to one session. It keeps a single ``typst.Compiler``
for its whole life, built over the session's font table, so fonts are
discovered once and the compiler's world is reused between calls. The
bindings compile files on disk, so every call restages the world snapshot in
the engine's staging directory:
- the session root is mirrored with symlinks (template assets stay importable)
- virtual files are written over the mirror (a virtual file shadows a real one)
- the main markup is written to main.typ
The staging directory is removed by ``close()``.
"""

import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

import typst

from quire.contexts.rendering.diagnostics import (
    Diagnostic,
    TraceItem,
    parse_diagnostics,
)
from quire.contexts.rendering.exceptions import CompileError

MAIN_FILE = "main.typ"


@dataclass(frozen=True)
class WorldSnapshot:
    """
    Everything one compilation reads.

    Attributes:
        root: Directory imports and assets resolve against
        markup: Main document source
        files: Virtual files by normalized relative path
        inputs: sys.inputs key/value pairs
    """

    root: Path
    markup: str = ""
    files: Mapping[str, bytes] = field(default_factory=dict)
    inputs: Mapping[str, str] = field(default_factory=dict)

    def source_text(self, path: str) -> Optional[str]:
        """Source text of a file as the engine saw it, if it is text."""
        path = str(PurePosixPath(path.replace(os.sep, "/")))
        if path == MAIN_FILE:
            return self.markup
        if path in self.files:
            return self.files[path].decode("utf-8", errors="replace")

        on_disk = self.root / path
        if on_disk.is_file():
            try:
                return on_disk.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                return None
        return None


class Engine(ABC):
    """Interface between a Session and the document compiler."""

    @abstractmethod
    def compile_pages(self, world: WorldSnapshot) -> Tuple[List[str], List[Diagnostic]]:
        """
        Compile the world into a paged document.

        Returns:
            (one SVG string per page, warning diagnostics)

        Raises:
            CompileError: The document does not compile
        """

    @abstractmethod
    def export_pdf(self, world: WorldSnapshot, standards: Sequence[str] = ()) -> bytes:
        """
        Compile the world to PDF bytes.

        Args:
            world: Snapshot to compile
            standards: Engine standard identifiers ("1.7", "a-2b", "a-3b")

        Raises:
            CompileError: Compilation or export failed
        """

    @abstractmethod
    def export_html(self, world: WorldSnapshot) -> str:
        """
        Compile the world as an HTML document.

        Raises:
            CompileError: Compilation or export failed
        """

    def close(self) -> None:
        """Release whatever the engine holds between calls."""


class TypstEngine(Engine):
    """
    Engine backed by a persistent ``typst.Compiler``.

    Args:
        fonts: Font table shared with the session (a ``typst.Fonts``); when
               omitted the compiler searches ``font_paths`` itself
        font_paths: Extra font directories (used without ``fonts``)
        ignore_system_fonts: Skip system fonts (used without ``fonts``)
    """

    def __init__(
        self,
        fonts: Optional[Any] = None,
        font_paths: Iterable[Path] = (),
        ignore_system_fonts: bool = False,
    ):
        self._staging: Optional[Path] = Path(tempfile.mkdtemp(prefix="quire-"))
        self._compiler = typst.Compiler(
            root=str(self._staging),
            font_paths=fonts if fonts is not None else [str(path) for path in font_paths],
            ignore_system_fonts=ignore_system_fonts,
        )

    def compile_pages(self, world: WorldSnapshot) -> Tuple[List[str], List[Diagnostic]]:
        output, warnings = self._compile(world, "svg")
        pages = output if isinstance(output, list) else [output]
        return [page.decode("utf-8") for page in pages], warnings

    def export_pdf(self, world: WorldSnapshot, standards: Sequence[str] = ()) -> bytes:
        output, _ = self._compile(world, "pdf", pdf_standards=list(standards))
        return output

    def export_html(self, world: WorldSnapshot) -> str:
        output, _ = self._compile(world, "html")
        return output.decode("utf-8") if isinstance(output, bytes) else output

    def close(self) -> None:
        """Remove the staging directory. The engine cannot be used afterwards."""
        if self._staging is not None:
            shutil.rmtree(self._staging, ignore_errors=True)
            self._staging = None
        self._compiler = None

    def _compile(
        self, world: WorldSnapshot, format_name: str, pdf_standards: Optional[List[str]] = None
    ) -> Tuple[Any, List[Diagnostic]]:
        if self._compiler is None:
            raise RuntimeError("Engine is closed")

        clear_directory(self._staging)
        main = stage_world(world, self._staging)

        kwargs: Dict[str, Any] = {
            "input": str(main),
            "format": format_name,
            "sys_inputs": dict(world.inputs),
        }
        if pdf_standards:
            kwargs["pdf_standards"] = pdf_standards

        resolver = _source_resolver(world, self._staging)
        try:
            output, raw_warnings = self._compiler.compile_with_warnings(**kwargs)
        except typst.TypstError as e:
            raise CompileError(engine_diagnostics(e, "error", resolver)) from e

        warnings: List[Diagnostic] = []
        for warning in raw_warnings or ():
            warnings.extend(engine_diagnostics(warning, "warning", resolver))
        return output, warnings


def engine_diagnostics(report: Any, severity: str, resolver=None) -> List[Diagnostic]:
    """
    Convert an engine error or warning object into diagnostics.

    The rendered text carries locations, so it is parsed first; the structured
    attributes (message, hints, trace) are the fallback.
    """
    text = getattr(report, "diagnostic", None) or str(report)
    diagnostics = parse_diagnostics(text, default_severity=severity, resolve_source=resolver)
    if diagnostics and any(d.span is not None for d in diagnostics):
        return diagnostics

    message = getattr(report, "message", None)
    if not message:
        return diagnostics or [Diagnostic(severity=severity, message=text.strip() or "unknown error")]

    return [
        Diagnostic(
            severity=severity,
            message=str(message),
            trace=tuple(TraceItem(message=str(item)) for item in getattr(report, "trace", None) or ()),
            hints=tuple(str(hint) for hint in getattr(report, "hints", None) or ()),
        )
    ]


def clear_directory(directory: Path) -> None:
    """Empty a staging directory without following its symlinks."""
    for entry in directory.iterdir():
        if entry.is_symlink() or not entry.is_dir():
            entry.unlink()
        else:
            shutil.rmtree(entry)


def stage_world(world: WorldSnapshot, staging: Path) -> Path:
    """
    Lay out a world snapshot on disk for the engine.

    Args:
        world: Snapshot to stage
        staging: Empty directory that becomes the compilation root

    Returns:
        Path to the staged main file
    """
    virtual: Set[PurePosixPath] = {PurePosixPath(path) for path in world.files}
    virtual.add(PurePosixPath(MAIN_FILE))
    shadowed = {parent for path in virtual for parent in path.parents if parent != PurePosixPath(".")}

    _mirror(Path(world.root), staging, PurePosixPath("."), virtual, shadowed)

    for path, content in world.files.items():
        target = staging / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    main = staging / MAIN_FILE
    main.write_text(world.markup, encoding="utf-8")
    return main


def _mirror(
    source: Path,
    target: Path,
    relative: PurePosixPath,
    virtual: Set[PurePosixPath],
    shadowed: Set[PurePosixPath],
) -> None:
    if not source.is_dir():
        return

    for entry in source.iterdir():
        entry_relative = relative / entry.name
        if entry_relative in virtual:
            continue

        destination = target / entry.name
        if entry_relative in shadowed:
            # A virtual file lives somewhere below: mirror this directory level by level
            if entry.is_dir():
                destination.mkdir()
                _mirror(entry, destination, entry_relative, virtual, shadowed)
            continue

        destination.symlink_to(entry.resolve(), target_is_directory=entry.is_dir())


def _source_resolver(world: WorldSnapshot, staging: Path):
    staging_resolved = staging.resolve()

    def resolve(printed_path: str) -> Tuple[str, Optional[str]]:
        printed = printed_path.replace("\\", "/")
        path = Path(printed)
        if not path.is_absolute():
            # The engine prints paths relative to the working directory
            path = Path.cwd() / path
        path = Path(os.path.normpath(path))

        for base in (staging, staging_resolved):
            try:
                relative = path.relative_to(base).as_posix()
                break
            except ValueError:
                continue
        else:
            # Root-relative path ("main.typ" or "/main.typ")
            relative = printed.lstrip("/")
        return relative, world.source_text(relative)

    return resolve
