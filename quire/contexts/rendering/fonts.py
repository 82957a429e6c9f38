"""
Font discovery.

Builds the font table a session exposes through ``font_families()``. The table
is a ``typst.Fonts`` search over Typst's embedded fonts, the configured font
directories and (unless ignored) the system fonts. The same object is handed
to the session's compiler, so the engine compiles with exactly the fonts the
session lists and searches for them only once.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, FrozenSet, Iterable, List, Optional, Tuple

import typst

from quire.contexts.rendering.exceptions import FontDiscoveryError
from quire.contexts.rendering.logger import _log_debug


@dataclass(frozen=True)
class FontBook:
    """
    Font families available to a session.

    Attributes:
        families: Family names
        files: Font files that contributed at least one family
        search_paths: Configured directories that were searched
        fonts: The ``typst.Fonts`` table the compiler is built over
    """

    families: FrozenSet[str] = field(default_factory=frozenset)
    files: Tuple[Path, ...] = ()
    search_paths: Tuple[Path, ...] = ()
    fonts: Optional[Any] = field(default=None, repr=False, compare=False)

    @classmethod
    def discover(
        cls,
        font_paths: Iterable[Path] = (),
        ignore_system_fonts: bool = False,
        include_embedded: bool = True,
        strict: bool = True,
    ) -> "FontBook":
        """
        Search font directories once and collect family names.

        Args:
            font_paths: Extra directories (or individual font files) to search
            ignore_system_fonts: Skip the system fonts
            include_embedded: Include Typst's embedded fonts
            strict: Raise FontDiscoveryError for a configured path that does not
                    exist instead of skipping it

        Returns:
            FontBook with every family found

        Raises:
            FontDiscoveryError: A configured font path is missing (strict only)
        """
        start_time = time.time()

        search_paths: List[Path] = []
        for font_path in font_paths:
            font_path = Path(font_path)
            if not font_path.exists():
                if strict:
                    raise FontDiscoveryError("Font path does not exist", font_path=font_path)
                continue
            search_paths.append(font_path)

        fonts = typst.Fonts(
            include_system_fonts=not ignore_system_fonts,
            include_embedded_fonts=include_embedded,
            font_paths=[str(path) for path in search_paths],
        )
        families = frozenset(fonts.families())
        files = tuple(sorted({Path(info.path) for info in fonts.fonts() if info.path}))

        _log_debug(
            f"Font discovery: {len(families)} families from {len(files)} files "
            f"({time.time() - start_time:.2f}s)"
        )
        return cls(families=families, files=files, search_paths=tuple(search_paths), fonts=fonts)

    def family_names(self) -> List[str]:
        return sorted(self.families)


def font_families(font_paths: Iterable[Path] = (), ignore_system_fonts: bool = False) -> List[str]:
    """
    List font families without creating a session.

    Missing directories are skipped rather than treated as errors.
    """
    book = FontBook.discover(font_paths, ignore_system_fonts=ignore_system_fonts, strict=False)
    return book.family_names()
