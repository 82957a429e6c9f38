"""Unit tests for laying out a world snapshot on disk."""

import os

import pytest

from quire.contexts.rendering import WorldSnapshot
from quire.contexts.rendering.engine import MAIN_FILE, _source_resolver, clear_directory, stage_world


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "project"
    (root / "lib").mkdir(parents=True)
    (root / "lib" / "theme.typ").write_text("#let accent = red", encoding="utf-8")
    (root / "lib" / "data.typ").write_text("#let rows = ()", encoding="utf-8")
    (root / "logo.svg").write_text("<svg/>", encoding="utf-8")
    (root / "main.typ").write_text("on disk", encoding="utf-8")
    return root


@pytest.mark.unit
def test_root_is_mirrored(project, tmp_path):
    staging = tmp_path / "staging"
    staging.mkdir()

    main = stage_world(WorldSnapshot(root=project, markup="= Hello"), staging)

    assert main == staging / MAIN_FILE
    assert main.read_text(encoding="utf-8") == "= Hello"
    assert (staging / "logo.svg").is_symlink()
    assert (staging / "lib").is_symlink()
    assert (staging / "lib" / "theme.typ").read_text(encoding="utf-8") == "#let accent = red"


@pytest.mark.unit
def test_virtual_files_shadow_real_files(project, tmp_path):
    """Test a virtual file replaces its real counterpart while siblings stay linked."""
    staging = tmp_path / "staging"
    staging.mkdir()
    world = WorldSnapshot(root=project, markup="x", files={"lib/data.typ": b"#let rows = (1,)", "new/extra.typ": b"hi"})

    stage_world(world, staging)

    assert not (staging / "lib").is_symlink()
    assert not (staging / "lib" / "data.typ").is_symlink()
    assert (staging / "lib" / "data.typ").read_bytes() == b"#let rows = (1,)"
    assert (staging / "lib" / "theme.typ").is_symlink()
    assert (staging / "new" / "extra.typ").read_bytes() == b"hi"
    assert (project / "lib" / "data.typ").read_text(encoding="utf-8") == "#let rows = ()"
    assert (project / "main.typ").read_text(encoding="utf-8") == "on disk"


@pytest.mark.unit
def test_missing_root_stages_only_virtual_state(tmp_path):
    staging = tmp_path / "staging"
    staging.mkdir()

    stage_world(WorldSnapshot(root=tmp_path / "absent", markup="m", files={"a.typ": b"a"}), staging)

    assert sorted(p.name for p in staging.iterdir()) == ["a.typ", "main.typ"]


@pytest.mark.unit
def test_source_text_sees_virtual_state(project):
    world = WorldSnapshot(root=project, markup="main source", files={"lib/data.typ": b"virtual"})

    assert world.source_text("main.typ") == "main source"
    assert world.source_text("lib/data.typ") == "virtual"
    assert world.source_text("lib/theme.typ") == "#let accent = red"
    assert world.source_text("missing.typ") is None


@pytest.mark.unit
def test_restaging_replaces_previous_world(project, tmp_path):
    """Test clearing the staging directory drops old virtual files but never touches the root."""
    staging = tmp_path / "staging"
    staging.mkdir()
    stage_world(WorldSnapshot(root=project, markup="one", files={"lib/data.typ": b"old", "gone.typ": b"x"}), staging)

    clear_directory(staging)
    stage_world(WorldSnapshot(root=project, markup="two"), staging)

    assert not (staging / "gone.typ").exists()
    assert (staging / "lib").is_symlink()
    assert (staging / "lib" / "data.typ").read_text(encoding="utf-8") == "#let rows = ()"
    assert (staging / MAIN_FILE).read_text(encoding="utf-8") == "two"
    assert (project / "lib" / "theme.typ").is_file()


@pytest.mark.unit
@pytest.mark.parametrize("style", ["absolute", "cwd-relative", "root-relative"])
def test_printed_paths_resolve_to_root_relative_sources(project, tmp_path, monkeypatch, style):
    """Test engine-printed paths map back to the world's sources, whatever form they take."""
    staging = tmp_path / "staging"
    staging.mkdir()
    world = WorldSnapshot(root=project, markup="main source", files={"lib/data.typ": b"virtual"})
    monkeypatch.chdir(project / "lib")

    printed = {
        "absolute": str(staging / "lib" / "data.typ"),
        "cwd-relative": os.path.relpath(staging / "lib" / "data.typ"),
        "root-relative": "/lib/data.typ",
    }[style]

    assert _source_resolver(world, staging)(printed) == ("lib/data.typ", "virtual")
    assert _source_resolver(world, staging)(os.path.relpath(staging / MAIN_FILE))[0] == MAIN_FILE
