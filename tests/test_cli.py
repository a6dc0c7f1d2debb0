from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from conftest import split_color_jpeg
from mediashelf.cli import app

runner = CliRunner()


def _base_args(tmp_path: Path) -> list[str]:
    return ["--config", str(tmp_path / "config.yaml"), "--dir", str(tmp_path / "media")]


def test_ingest_then_list(tmp_path: Path) -> None:
    photo = tmp_path / "holiday.jpg"
    photo.write_bytes(split_color_jpeg())

    res = runner.invoke(app, [*_base_args(tmp_path), "ingest", str(photo), "--json"])
    assert res.exit_code == 0, res.output
    out = json.loads(res.stdout)
    assert out["derived_sizes"] == ["320x240"]
    assert (tmp_path / "config.yaml").exists()
    assert (tmp_path / "media" / "320x240" / f"{out['storage_key']}.jpg").exists()

    res = runner.invoke(app, [*_base_args(tmp_path), "data", out["storage_key"], "--caption-lang", "en=Beach", "--json"])
    assert res.exit_code == 0, res.output

    res = runner.invoke(app, [*_base_args(tmp_path), "list", "--json"])
    assert res.exit_code == 0, res.output
    rows = json.loads(res.stdout)
    assert len(rows) == 1
    assert rows[0]["received_name"] == "holiday.jpg"
    assert rows[0]["hidden"] is True
    assert rows[0]["caption"] == {"en": "Beach"}


def test_unknown_key_exits_with_error(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("NO_COLOR", "1")
    res = runner.invoke(app, [*_base_args(tmp_path), "hide", "nope"])
    assert res.exit_code == 1
    assert "UnknownKeyError" in res.output


def test_list_empty(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("NO_COLOR", "1")
    res = runner.invoke(app, [*_base_args(tmp_path), "list"])
    assert res.exit_code == 0
    assert "no media" in res.output
