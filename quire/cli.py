"""
QUIRE command line

Commands:
    render  - Run a declared render from a YAML declaration file
    compile - Compile a Typst file, optionally with JSON data injected
    fonts   - List the font families a session would see

Examples:\n

    quire render renders.yaml invoice_pdf --arg id=42 --data invoices.json -o invoice.pdf

    quire compile report.typ --data rows.json --var rows --format svg --page 1

    quire fonts --font-path assets/fonts --ignore-system-fonts
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from dotenv import load_dotenv
from typing_extensions import Annotated

from quire.contexts.encoding import encode_binding
from quire.contexts.pipeline import InMemoryDataSource, RenderRegistry
from quire.contexts.pipeline.logger import setup_pipeline_logger
from quire.contexts.rendering import QuireError, Session, font_families
from quire.contexts.rendering.logger import setup_rendering_logger

load_dotenv()
LOGS_PATH = Path(os.getenv("QUIRE_LOGS_PATH", "outs/logs"))

FORMATS = ("pdf", "svg", "html")

app = typer.Typer(
    help="Render Typst documents from structured data",
    add_completion=False,
    invoke_without_command=True,
)


@app.callback()
def main(ctx: typer.Context):
    """Show help by default when no command is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


# ============================================================================
# Helpers
# ============================================================================


def parse_pairs(pairs: Optional[List[str]], option: str) -> Dict[str, str]:
    """Parse repeated key=value options."""
    parsed = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got '{pair}'", param_hint=option)
        parsed[key] = value
    return parsed


def load_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        typer.secho(f"Error: cannot read JSON data from {path}: {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


def run_log_dir(context_name: str, log_dir: Optional[Path]) -> Path:
    """Log directory for one command run: LOGS_PATH/<context>_<timestamp> unless given."""
    return log_dir or LOGS_PATH / f"{context_name}_{datetime.now().strftime('%Y%m%d_%H%M%S')}"


def console_level(verbose: bool) -> str:
    return "DEBUG" if verbose else "WARNING"


def write_output(data, output: Optional[Path], format_name: str) -> None:
    """Write to a file, or to stdout for text formats when no file is given."""
    if output is None:
        if isinstance(data, bytes):
            typer.secho("Error: --output is required for pdf output\n", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)
        typer.echo(data)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, bytes):
        output.write_bytes(data)
    else:
        output.write_text(data, encoding="utf-8")
    typer.secho(f"✓ Wrote {format_name}: {output}", fg=typer.colors.GREEN, err=True)


def report_error(error: QuireError) -> None:
    typer.secho(f"✗ {type(error).__name__}", fg=typer.colors.RED, bold=True, err=True)
    typer.secho(f"{error}\n", fg=typer.colors.RED, err=True)


# ============================================================================
# Commands
# ============================================================================


@app.command("render")
def render_command(
    declarations: Annotated[Path, typer.Argument(help="YAML file declaring templates and renders")],
    render_name: Annotated[str, typer.Argument(help="Name of the render to run")],
    arguments: Annotated[
        Optional[List[str]],
        typer.Option("--arg", "-a", help="Render argument as key=value (repeatable)"),
    ] = None,
    data: Annotated[
        Optional[Path],
        typer.Option("--data", "-d", help="JSON file with the records to read from (list or object)"),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output file (svg/html default to stdout)"),
    ] = None,
    log_dir: Annotated[
        Optional[Path],
        typer.Option("--log-dir", help="Log directory (default: QUIRE_LOGS_PATH/pipeline_<timestamp>)"),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Echo debug logging")] = False,
):
    """
    Run a declared render.

    Records from --data are served to the render's read; arguments given as
    strings are converted to their declared types.

    Examples:\n

        $ quire render renders.yaml invoice_pdf --arg id=42 --data invoices.json -o invoice.pdf

        $ quire render renders.yaml summary_svg > summary.svg
    """
    setup_pipeline_logger(
        run_log_dir("pipeline", log_dir), declarations=declarations, console_level=console_level(verbose)
    )

    records = load_json(data) if data is not None else []
    if isinstance(records, dict):
        records = [records]

    try:
        registry = RenderRegistry.from_yaml(declarations, data_source=InMemoryDataSource(records))
        document = registry.run(render_name, parse_pairs(arguments, "--arg"))
    except QuireError as e:
        report_error(e)
        raise typer.Exit(code=1)

    typer.secho(
        f"✓ {render_name}: {document.page_count} page(s), {len(document.warnings)} warnings",
        fg=typer.colors.GREEN,
        bold=True,
        err=True,
    )
    write_output(document.data, output, document.format)


@app.command("compile")
def compile_command(
    template: Annotated[Path, typer.Argument(help="Typst file to compile")],
    format_name: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: pdf, svg or html"),
    ] = "pdf",
    data: Annotated[
        Optional[Path],
        typer.Option("--data", "-d", help="JSON file injected as a Typst binding"),
    ] = None,
    variable: Annotated[
        str,
        typer.Option("--var", help="Name of the binding the JSON data is assigned to"),
    ] = "data",
    data_file: Annotated[
        str,
        typer.Option("--data-file", help="Virtual file the binding is written to"),
    ] = "data.typ",
    inputs: Annotated[
        Optional[List[str]],
        typer.Option("--input", "-i", help="sys.inputs entry as key=value (repeatable)"),
    ] = None,
    page: Annotated[int, typer.Option("--page", help="Page to render (svg only)", min=0)] = 0,
    pages: Annotated[
        Optional[str],
        typer.Option("--pages", help="PDF page ranges, 1-indexed (e.g. 1-3,5)"),
    ] = None,
    root: Annotated[
        Optional[Path],
        typer.Option("--root", help="Root for imports and assets (default: the template's directory)"),
    ] = None,
    font_paths: Annotated[
        Optional[List[Path]],
        typer.Option("--font-path", help="Extra font directory (repeatable)"),
    ] = None,
    ignore_system_fonts: Annotated[
        bool, typer.Option("--ignore-system-fonts", help="Do not search system fonts")
    ] = False,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output file (svg/html default to stdout)"),
    ] = None,
    log_dir: Annotated[
        Optional[Path],
        typer.Option("--log-dir", help="Log directory (default: QUIRE_LOGS_PATH/render_<timestamp>)"),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Echo debug logging")] = False,
):
    """
    Compile a Typst file directly.

    JSON data is encoded as a Typst value: a list is streamed as an array,
    anything else is written as a single binding.

    Examples:\n

        $ quire compile invoice.typ --data invoice.json --var record -o invoice.pdf

        $ quire compile report.typ --format svg --page 2 > page3.svg
    """
    if format_name not in FORMATS:
        raise typer.BadParameter(f"Expected one of {', '.join(FORMATS)}", param_hint="--format")
    if not template.is_file():
        typer.secho(f"Error: template not found: {template}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    root = root or template.parent
    setup_rendering_logger(run_log_dir("render", log_dir), root=root, console_level=console_level(verbose))

    try:
        with Session(root=root, font_paths=font_paths or (), ignore_system_fonts=ignore_system_fonts) as session:
            session.set_markup(template.read_text(encoding="utf-8"))
            if inputs:
                session.set_inputs(parse_pairs(inputs, "--input"))
            if data is not None:
                value = load_json(data)
                if isinstance(value, list):
                    session.stream_virtual_file(data_file, value, variable_name=variable)
                else:
                    session.set_virtual_file(data_file, encode_binding(variable, value))

            result = session.compile()
            if format_name == "pdf":
                rendered = session.export_pdf(pages=pages)
            elif format_name == "svg":
                rendered = session.render_svg(page)
            else:
                rendered = session.export_html()
    except QuireError as e:
        report_error(e)
        raise typer.Exit(code=1)

    typer.secho(
        f"✓ {template.name}: {result.page_count} page(s), {len(result.warnings)} warnings",
        fg=typer.colors.GREEN,
        bold=True,
        err=True,
    )
    write_output(rendered, output, format_name)


@app.command("fonts")
def fonts_command(
    font_paths: Annotated[
        Optional[List[Path]],
        typer.Option("--font-path", help="Extra font directory (repeatable)"),
    ] = None,
    ignore_system_fonts: Annotated[
        bool, typer.Option("--ignore-system-fonts", help="Do not search system fonts")
    ] = False,
):
    """
    List available font families, one per line.

    Examples:\n

        $ quire fonts --font-path assets/fonts
    """
    for family in font_families(font_paths or (), ignore_system_fonts=ignore_system_fonts):
        typer.echo(family)


if __name__ == "__main__":
    app()
