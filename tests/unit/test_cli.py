"""Unit tests for the command line, with the engine replaced by the fake one."""

import json
import sys

import pytest
from loguru import logger
from typer.testing import CliRunner

from quire.cli import app, parse_pairs
from quire.contexts.rendering import session as session_module

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_logger():
    """Commands reconfigure loguru; put the default sink back afterwards."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def engine(monkeypatch, fake_engine):
    monkeypatch.setattr(session_module, "TypstEngine", lambda **kwargs: fake_engine)
    return fake_engine


@pytest.fixture
def template(tmp_path):
    path = tmp_path / "doc.typ"
    path.write_text("first #pagebreak() second", encoding="utf-8")
    return path


def invoke(*args):
    return runner.invoke(app, [str(arg) for arg in args])


@pytest.mark.unit
def test_no_command_shows_help():
    result = invoke()
    assert result.exit_code == 0
    assert "render" in result.output
    assert "fonts" in result.output


@pytest.mark.unit
def test_fonts_lists_embedded_families():
    result = invoke("fonts", "--ignore-system-fonts")

    assert result.exit_code == 0
    assert "Libertinus Serif" in result.output.splitlines()


@pytest.mark.unit
def test_parse_pairs():
    assert parse_pairs(["a=1", "b=x=y"], "--arg") == {"a": "1", "b": "x=y"}
    assert parse_pairs(None, "--arg") == {}


# ============================================================================
# compile
# ============================================================================


@pytest.mark.unit
def test_compile_svg_to_stdout(engine, template, tmp_path):
    result = invoke(
        "compile", template, "--format", "svg", "--page", 1, "--ignore-system-fonts", "--log-dir", tmp_path / "logs"
    )

    assert result.exit_code == 0, result.output
    assert "page 1" in result.output
    assert "second" in result.output
    log = (tmp_path / "logs" / "render.log").read_text(encoding="utf-8")
    assert "QUIRE: " in log
    assert "Typst bindings: " in log


@pytest.mark.unit
def test_compile_streams_json_list(engine, template, tmp_path):
    data = tmp_path / "rows.json"
    data.write_text(json.dumps([{"n": 1}, {"n": 2}]), encoding="utf-8")

    result = invoke(
        "compile", template, "-f", "html", "--data", data, "--var", "rows",
        "--input", "lang=en", "--ignore-system-fonts", "--log-dir", tmp_path / "logs",
    )

    assert result.exit_code == 0, result.output
    world = engine.compiled[-1]
    assert world.files["data.typ"].decode("utf-8") == '#let rows = (\n  ("n": int(1)),\n  ("n": int(2)),\n)\n'
    assert world.inputs == {"lang": "en"}


@pytest.mark.unit
def test_compile_json_object_single_binding(engine, template, tmp_path):
    data = tmp_path / "record.json"
    data.write_text(json.dumps({"title": "Q3"}), encoding="utf-8")

    result = invoke(
        "compile", template, "-f", "svg", "--data", data, "--var", "record", "--data-file", "inc/record.typ",
        "--ignore-system-fonts", "--log-dir", tmp_path / "logs",
    )

    assert result.exit_code == 0, result.output
    assert engine.compiled[-1].files["inc/record.typ"] == b'#let record = ("title": "Q3")\n'


@pytest.mark.unit
def test_compile_pdf_requires_output(engine, template, tmp_path):
    result = invoke("compile", template, "--ignore-system-fonts", "--log-dir", tmp_path / "logs")

    assert result.exit_code == 1
    assert "--output is required" in result.output


@pytest.mark.unit
def test_compile_pdf_to_file(engine, template, tmp_path):
    output = tmp_path / "out" / "doc.pdf"

    result = invoke(
        "compile", template, "--pages", "2", "-o", output, "--ignore-system-fonts", "--log-dir", tmp_path / "logs"
    )

    assert result.exit_code == 0, result.output
    assert output.read_bytes().startswith(b"%PDF")


@pytest.mark.unit
def test_compile_error_exits_nonzero(engine, tmp_path):
    broken = tmp_path / "broken.typ"
    broken.write_text("#panic", encoding="utf-8")

    result = invoke("compile", broken, "-f", "svg", "--ignore-system-fonts", "--log-dir", tmp_path / "logs")

    assert result.exit_code == 1
    assert "CompileError" in result.output
    assert "panicked" in result.output


@pytest.mark.unit
def test_compile_rejects_bad_options(engine, template, tmp_path):
    assert invoke("compile", template, "-f", "docx").exit_code == 2
    assert invoke("compile", tmp_path / "missing.typ").exit_code == 1

    result = invoke("compile", template, "-f", "svg", "-i", "novalue", "--ignore-system-fonts", "--log-dir", tmp_path / "logs")
    assert result.exit_code == 2


# ============================================================================
# render
# ============================================================================


@pytest.fixture
def declarations(tmp_path):
    (tmp_path / "customer.typ").write_text('#import "data.typ": record\n= #record.name', encoding="utf-8")
    path = tmp_path / "renders.yaml"
    path.write_text(
        "ignore_system_fonts: true\n"
        "templates:\n"
        "  customer: {source: customer.typ}\n"
        "renders:\n"
        "  customer_svg:\n"
        "    template: customer\n"
        "    format: svg\n"
        "    arguments: [{name: id, type: int, allow_nil: false}]\n"
        "    read: {cardinality: one, filter: {id: '^arg:id'}}\n",
        encoding="utf-8",
    )
    return path


@pytest.mark.unit
def test_render_command(engine, declarations, tmp_path):
    data = tmp_path / "customers.json"
    data.write_text(json.dumps([{"id": 1, "name": "Acme"}, {"id": 2, "name": "Globex"}]), encoding="utf-8")

    result = invoke("render", declarations, "customer_svg", "--arg", "id=2", "--data", data, "--log-dir", tmp_path / "logs")

    assert result.exit_code == 0, result.output
    assert "<svg>" in result.output
    assert engine.compiled[-1].files["data.typ"].startswith(b'#let record = ("id": int(2), "name": "Globex")')
    assert (tmp_path / "logs" / "pipeline.log").is_file()


@pytest.mark.unit
def test_render_command_not_found(engine, declarations, tmp_path):
    result = invoke("render", declarations, "customer_svg", "--arg", "id=9", "--log-dir", tmp_path / "logs")

    assert result.exit_code == 1
    assert "FetchNotFound" in result.output
    assert engine.compiled == []


@pytest.mark.unit
def test_render_command_unknown_render(engine, declarations, tmp_path):
    result = invoke("render", declarations, "invoice_pdf", "--log-dir", tmp_path / "logs")

    assert result.exit_code == 1
    assert "Unknown render 'invoice_pdf'" in result.output
