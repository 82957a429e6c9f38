"""
Pipeline Context

Responsibilities:
- Declares templates and renders (inline or from YAML)
- Verifies declarations once, when they are compiled
- Runs renders: bind arguments, fetch, inject data, compile, export
- Maps engine failures to render-level errors

Owns: Render declarations, argument binding, data injection, Document output
Never: Parses Typst or talks to the engine except through a Session
"""

from quire.contexts.pipeline.compiler import compile_render
from quire.contexts.pipeline.data_source import (
    DataSource,
    ExecutionContext,
    InMemoryDataSource,
    Query,
)
from quire.contexts.pipeline.document import Document
from quire.contexts.pipeline.errors import (
    ArgumentError,
    ConfigurationError,
    FetchNotFound,
    RenderCompileError,
    TemplateReadError,
)
from quire.contexts.pipeline.registry import RenderRegistry
from quire.contexts.pipeline.run import RenderPipeline
from quire.contexts.pipeline.specs import (
    ArgumentSpec,
    ReadSpec,
    RenderSpec,
    TemplateSpec,
    TypstConfig,
)

__all__ = [
    "compile_render",
    "RenderPipeline",
    "RenderRegistry",
    "DataSource",
    "InMemoryDataSource",
    "ExecutionContext",
    "Query",
    "Document",
    "TemplateSpec",
    "RenderSpec",
    "ReadSpec",
    "ArgumentSpec",
    "TypstConfig",
    "RenderCompileError",
    "FetchNotFound",
    "ConfigurationError",
    "TemplateReadError",
    "ArgumentError",
]
