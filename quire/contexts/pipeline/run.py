"""
Render execution.

A RenderPipeline runs one compiled render declaration:

    bind arguments -> validate -> fetch -> open session -> install template
    -> set inputs -> inject data -> compile -> export

Each step either succeeds or raises, and nothing after a failing step runs:
a missing record is reported before any session (and its font discovery) is
created. The session is always closed when the run ends.
"""

import time
from typing import Any, Dict, Mapping, Optional

from quire.contexts.encoding import encode_binding
from quire.contexts.encoding.context import EncodingContext
from quire.contexts.pipeline.data_source import DataSource, ExecutionContext, Query
from quire.contexts.pipeline.document import Document
from quire.contexts.pipeline.errors import (
    ArgumentError,
    FetchNotFound,
    RenderCompileError,
    TemplateReadError,
)
from quire.contexts.pipeline.logger import (
    _log_debug,
    log_fetch,
    log_run_failure,
    log_run_result,
    log_run_start,
)
from quire.contexts.pipeline.specs import RenderSpec, TemplateSpec, TypstConfig
from quire.contexts.rendering import CompileError, CompileResult, Engine, Session

# Marks a fetch that did not run (render without a read)
NO_READ = object()


class RenderPipeline:
    """
    Runnable form of a RenderSpec.

    Built by ``compile_render`` after the declaration has been verified.
    """

    def __init__(
        self,
        render: RenderSpec,
        template: TemplateSpec,
        config: TypstConfig,
        data_source: Optional[DataSource] = None,
        engine: Optional[Engine] = None,
    ):
        self.render = render
        self.template = template
        self.config = config
        self.data_source = data_source
        self.engine = engine
        self.encoding = EncodingContext.coerce(config.encoding)

    @property
    def name(self) -> str:
        return self.render.name

    def __repr__(self) -> str:
        return f"RenderPipeline({self.render.name!r}, template={self.template.name!r}, format={self.render.format!r})"

    def run(
        self,
        arguments: Optional[Mapping[str, Any]] = None,
        context: Optional[ExecutionContext] = None,
    ) -> Document:
        """
        Run the render.

        Args:
            arguments: Invocation arguments by name
            context: Actor/tenant/extra passed to the data source

        Returns:
            Document with the exported output, page count and warnings

        Raises:
            ArgumentError: Arguments fail to bind or validate
            FetchNotFound: A single-record read found nothing
            TemplateReadError: The template source file cannot be read
            RenderCompileError: The document does not compile
            CompileError: Export failed
        """
        context = context or ExecutionContext()
        start_time = time.time()

        try:
            args = self.bind_arguments(arguments or {})
            log_run_start(self.name, self.render.format, args)
            self.validate(args)

            data = self.fetch(args, context)

            with Session(
                root=self.config.root,
                font_paths=self.config.font_paths,
                ignore_system_fonts=self.config.ignore_system_fonts,
                engine=self.engine,
            ) as session:
                self.install_template(session)
                self.set_inputs(session)
                self.inject(session, data, args)
                result = self.compile(session)
                document = self.export(session, result)
        except Exception as e:
            log_run_failure(self.name, e, time.time() - start_time)
            raise

        log_run_result(self.name, document, time.time() - start_time)
        return document

    # ============================================================================
    # Arguments
    # ============================================================================

    def bind_arguments(self, arguments: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Bind supplied arguments to the declared ones.

        Unsupplied arguments take their default. Values are converted to the
        declared type.

        Raises:
            ArgumentError: Unknown argument, nil where not allowed, or bad value
        """
        declared = {argument.name: argument for argument in self.render.arguments}
        unknown = sorted(set(arguments) - set(declared))
        if unknown:
            raise ArgumentError(
                f"Unknown argument(s): {', '.join(unknown)} "
                f"(declared: {', '.join(declared) or 'none'})",
                render=self.name,
            )

        bound = {}
        for name, spec in declared.items():
            value = arguments.get(name, spec.default)
            try:
                bound[name] = spec.coerce(value)
            except ArgumentError as e:
                raise ArgumentError(e.message, argument=name, render=self.name) from None
        return bound

    def validate(self, args: Dict[str, Any]) -> None:
        for validation in self.render.validations:
            message = validation(args)
            if message:
                raise ArgumentError(str(message), render=self.name)

    # ============================================================================
    # Fetch
    # ============================================================================

    def fetch(self, args: Dict[str, Any], context: ExecutionContext) -> Any:
        """
        Fetch the render's data.

        Returns:
            NO_READ without a read, the record (or None) for read one,
            an iterable of records for read many

        Raises:
            FetchNotFound: Read one found nothing and not_found is "error"
        """
        read = self.render.read
        if read is None:
            return NO_READ

        query = Query.build(read, args, context)
        start_time = time.time()

        if read.cardinality == "one":
            record = self.data_source.read_one(query, context)
            log_fetch("one", 0 if record is None else 1, time.time() - start_time)
            if record is None and read.not_found is not None:
                raise FetchNotFound(self.name, query)
            return record

        records = self.data_source.read(query, context)
        log_fetch("many", len(records) if hasattr(records, "__len__") else None, time.time() - start_time)
        return records

    # ============================================================================
    # Session steps
    # ============================================================================

    def install_template(self, session: Session) -> None:
        """
        Set the session markup from inline markup or the source file.

        Raises:
            TemplateReadError: The source file cannot be read
        """
        if self.template.source is None:
            session.set_markup(self.template.markup)
            return

        path = self.config.root / self.template.source
        try:
            markup = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise TemplateReadError(path, str(e)) from e
        _log_debug(f"  Template '{self.template.name}' read from {path}")
        session.set_markup(markup)

    def set_inputs(self, session: Session) -> None:
        if self.template.inputs:
            session.set_inputs(self.template.inputs)

    def inject(self, session: Session, data: Any, args: Dict[str, Any]) -> None:
        """
        Write the data file.

        - no read:   #let args = ...
        - read one:  #let record = ...  then  #let args = ...
        - read many: #let records = (...)  (streamed)  then  #let args = ...
        """
        data_file = self.render.data_file
        args_line = encode_binding("args", args, self.encoding)

        if data is NO_READ:
            session.set_virtual_file(data_file, args_line)
        elif self.render.read.cardinality == "one":
            session.set_virtual_file(data_file, encode_binding("record", data, self.encoding) + args_line)
        else:
            count = session.stream_virtual_file(
                data_file,
                data,
                variable_name="records",
                context=self.encoding,
                batch_size=self.render.read.batch_size,
            )
            session.append_virtual_file(data_file, args_line)
            _log_debug(f"  Injected {count} records into {data_file}")

    def compile(self, session: Session) -> CompileResult:
        try:
            return session.compile()
        except CompileError as e:
            raise RenderCompileError.from_compile_error(e, render=self.name) from e

    def export(self, session: Session, result: CompileResult) -> Document:
        """Export per format. Export failures propagate as CompileError."""
        format_name = self.render.format
        if format_name == "pdf":
            options = self.render.pdf_options.to_dict() if self.render.pdf_options is not None else {}
            data = session.export_pdf(**options)
        elif format_name == "svg":
            data = session.render_svg(self.render.page or 0)
        else:
            data = session.export_html()

        return Document(
            format=format_name,
            data=data,
            page_count=result.page_count,
            warnings=list(result.warnings),
        )
