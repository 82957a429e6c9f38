"""
Render compiler.

Turns a declared render into a runnable RenderPipeline. All declaration
checks happen here, once, so a pipeline that exists is known to be
well-formed and only fails at run time for run-time reasons.
"""

from typing import Optional

from quire.contexts.pipeline.data_source import DataSource
from quire.contexts.pipeline.errors import ConfigurationError
from quire.contexts.pipeline.run import RenderPipeline
from quire.contexts.pipeline.specs import RenderSpec, TypstConfig
from quire.contexts.pipeline.verifiers import verify_render
from quire.contexts.rendering import Engine


def compile_render(
    render: RenderSpec,
    config: TypstConfig,
    data_source: Optional[DataSource] = None,
    engine: Optional[Engine] = None,
) -> RenderPipeline:
    """
    Verify a render declaration and build its pipeline.

    Args:
        render: Render declaration
        config: Configuration holding the templates the render may reference
        data_source: Where records come from (required when the render reads)
        engine: Compiler backend for the render's sessions (default TypstEngine)

    Returns:
        RenderPipeline ready to run

    Raises:
        ConfigurationError: The declaration is malformed
    """
    verify_render(render, config)

    if render.read is not None and data_source is None:
        raise ConfigurationError(
            "Render declares a read but no data source was provided",
            render=render.name,
            path=("renders", render.name, "read"),
        )

    return RenderPipeline(
        render=render,
        template=config.template(render.template),
        config=config,
        data_source=data_source,
        engine=engine,
    )
