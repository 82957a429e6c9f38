"""
Render registry.

Holds a configuration's renders compiled into pipelines and runs them by
name. Declarations can be loaded from YAML:

    root: templates
    encoding:
      timezone: America/New_York
    templates:
      invoice:
        source: invoice.typ
        inputs: {lang: en}
    renders:
      invoice_pdf:
        template: invoice
        format: pdf
        arguments:
          - {name: id, type: int, allow_nil: false}
        read:
          cardinality: one
          filter: {id: "^arg:id"}
        pdf_options:
          pages: "1"

OmegaConf resolves interpolations such as ``${oc.env:TEMPLATE_ROOT}`` while
loading.
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from omegaconf import OmegaConf

from quire.contexts.pipeline.compiler import compile_render
from quire.contexts.pipeline.data_source import DataSource, ExecutionContext
from quire.contexts.pipeline.document import Document
from quire.contexts.pipeline.errors import ConfigurationError
from quire.contexts.pipeline.logger import log_registered
from quire.contexts.pipeline.run import RenderPipeline
from quire.contexts.pipeline.specs import TypstConfig
from quire.contexts.pipeline.verifiers import verify_config
from quire.contexts.rendering import Engine


class RenderRegistry:
    """
    Compiled renders of one configuration.

    Every render is verified and compiled when the registry is created, so a
    malformed declaration fails here rather than on first use.
    """

    def __init__(
        self,
        config: TypstConfig,
        data_source: Optional[DataSource] = None,
        engine: Optional[Engine] = None,
    ):
        verify_config(config)
        self.config = config
        self.data_source = data_source
        self._pipelines: Dict[str, RenderPipeline] = {
            render.name: compile_render(render, config, data_source=data_source, engine=engine)
            for render in config.renders
        }
        log_registered(self._pipelines)

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        data_source: Optional[DataSource] = None,
        engine: Optional[Engine] = None,
        base_dir: Optional[Path] = None,
    ) -> "RenderRegistry":
        return cls(TypstConfig.from_dict(data, base_dir=base_dir), data_source=data_source, engine=engine)

    @classmethod
    def from_yaml(
        cls,
        path: Union[str, Path],
        data_source: Optional[DataSource] = None,
        engine: Optional[Engine] = None,
    ) -> "RenderRegistry":
        """
        Load declarations from a YAML file.

        Relative paths in the file (root, font_paths) resolve against the
        file's directory.

        Raises:
            ConfigurationError: The file is missing or malformed
        """
        path = Path(path)
        if not path.is_file():
            raise ConfigurationError(f"Declaration file not found: {path}")

        data = OmegaConf.to_container(OmegaConf.load(path), resolve=True)
        if not isinstance(data, dict):
            raise ConfigurationError(f"Declaration file must contain a mapping: {path}")

        return cls.from_dict(data, data_source=data_source, engine=engine, base_dir=path.parent)

    def names(self) -> List[str]:
        return list(self._pipelines)

    def pipeline(self, name: str) -> RenderPipeline:
        """
        Compiled pipeline for a render.

        Raises:
            ConfigurationError: No render with that name is declared
        """
        try:
            return self._pipelines[name]
        except KeyError:
            declared = ", ".join(self._pipelines) or "(none)"
            raise ConfigurationError(
                f"Unknown render '{name}'. Declared renders: {declared}", render=name
            ) from None

    def run(
        self,
        name: str,
        arguments: Optional[Mapping[str, Any]] = None,
        context: Optional[ExecutionContext] = None,
    ) -> Document:
        """Run a declared render by name."""
        return self.pipeline(name).run(arguments, context)

    def __contains__(self, name: str) -> bool:
        return name in self._pipelines

    def __len__(self) -> int:
        return len(self._pipelines)
