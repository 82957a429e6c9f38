"""Exceptions raised while declaring or running renders."""

from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from quire.contexts.rendering.diagnostics import Diagnostic, format_diagnostics
from quire.contexts.rendering.exceptions import CompileError, QuireError


class RenderCompileError(QuireError):
    """
    Exception raised when a render's document does not compile.

    Carries the engine diagnostics unchanged.

    Attributes:
        diagnostics: Diagnostics reported by the engine
        render: Name of the render that failed (if known)
    """

    def __init__(self, diagnostics: Iterable[Diagnostic], render: Optional[str] = None):
        self.diagnostics: List[Diagnostic] = list(diagnostics)
        self.render = render

        header = "Typst compilation failed"
        if render is not None:
            header += f" in render '{render}'"
        super().__init__(f"{header}:\n{format_diagnostics(self.diagnostics)}")

    @classmethod
    def from_compile_error(cls, error: CompileError, render: Optional[str] = None) -> "RenderCompileError":
        return cls(error.diagnostics, render=render)


class FetchNotFound(QuireError):
    """
    Exception raised when a single-record read finds nothing.

    Attributes:
        render: Render whose read came back empty
        query: The query that was executed
    """

    def __init__(self, render: str, query=None):
        self.render = render
        self.query = query

        message = f"Render '{render}' found no record"
        if query is not None and query.filter is not None:
            message += f" matching {query.filter!r}"
        super().__init__(message)


class ConfigurationError(QuireError):
    """
    Exception raised when a render or template declaration is malformed.

    Only raised while declarations are compiled, never during a run.

    Attributes:
        message: Error description
        render: Render the problem was found in (if any)
        path: Location of the offending option, e.g. ("renders", "invoice", "read")
    """

    def __init__(self, message: str, render: Optional[str] = None, path: Sequence[str] = ()):
        self.message = message
        self.render = render
        self.path = tuple(path)

        parts = [message]
        if render is not None:
            parts.append(f"Render: {render}")
        if self.path:
            parts.append(f"Path: {' -> '.join(self.path)}")

        super().__init__("\n".join(parts))


class TemplateReadError(QuireError, OSError):
    """
    Exception raised when a template source file cannot be read.

    Attributes:
        path: Template file path
        reason: Underlying error description
    """

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Failed to read template file {self.path}: {reason}")


class ArgumentError(QuireError, ValueError):
    """
    Exception raised when render arguments fail to bind or validate.

    Attributes:
        message: Error description
        argument: Offending argument name (if any)
        render: Render being invoked (if known)
    """

    def __init__(self, message: str, argument: Optional[str] = None, render: Optional[str] = None):
        self.message = message
        self.argument = argument
        self.render = render

        parts = [message]
        if argument is not None:
            parts.append(f"Argument: {argument}")
        if render is not None:
            parts.append(f"Render: {render}")

        super().__init__("\n".join(parts))
