"""Tests for the command-line entry point (main.py)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from incranges.main import main
from support import make_record, write_unit


def _write_manifest(tmp_path: Path) -> Path:
    write_unit(tmp_path, "a.c", previous="int a;\n", current="int a;\n", record=make_record())
    write_unit(tmp_path, "b.c", previous="int b;\n", current="long b;\n", record=make_record())
    manifest = tmp_path / "build.yaml"
    manifest.write_text(
        "jobs:\n"
        "  - name: a.c\n"
        "    primary: a.c\n"
        "  - name: b.c\n"
        "    primary: b.c\n"
        "  - name: c.c\n"
        "    primary: c.c\n"
        "  - name: link\n",
        encoding="utf-8",
    )
    (tmp_path / "c.c").write_text("int c;\n", encoding="utf-8")
    return manifest


def test_plan_json(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    manifest = _write_manifest(tmp_path)

    assert main(["plan", str(manifest), "--json"]) == 0
    out = json.loads(capsys.readouterr().out)
    # a.c has no record of what it read from the changed b.c
    assert out["needed"] == ["a.c", "b.c", "c.c", "link"]
    assert out["lacking_info"] == ["c.c"]
    assert any(w.endswith(":unable_to_load_source_ranges") for w in out["warnings"])


def test_plan_text(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    manifest = _write_manifest(tmp_path)

    assert main(["plan", str(manifest), "--show-decisions", "--dump-compiled-source-diffs"]) == 0
    captured = capsys.readouterr()
    assert captured.out.startswith("needed:\n")
    assert "lacking incremental info:\n  c.c" in captured.out
    assert "changed ranges in previously-compiled 'b.c'" in captured.err


def test_requires_command():
    with pytest.raises(SystemExit):
        main([])
