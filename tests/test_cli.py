"""Tests for the commands that need no model or vector store."""

import yaml
from click.testing import CliRunner

from notemap.cli import cli
from notemap.models import CacheEntry, CacheSnapshot, DocumentKey
from notemap.sync.cache import NotesCache

from conftest import utc


def test_init_writes_config(tmp_path):
    home = tmp_path / "nm"
    result = CliRunner().invoke(cli, ["init", "--path", str(home)])
    assert result.exit_code == 0, result.output
    assert (home / "notes").is_dir()
    cfg = yaml.safe_load((home / "config.yaml").read_text())
    assert cfg["notes_path"] == str((home / "notes").resolve())
    assert cfg["clustering"]["epsilon"] == 0.6


def test_cache_show_and_clear(tmp_path):
    cache_path = tmp_path / "notes-cache.json"
    config = tmp_path / "config.yaml"
    config.write_text(f"cache_path: {cache_path}\n")
    runner = CliRunner()

    result = runner.invoke(cli, ["-c", str(config), "cache"])
    assert result.exit_code == 0
    assert "No cache" in result.output

    NotesCache(cache_path).save(CacheSnapshot(utc(2024, 1, 1), {DocumentKey("A", utc(2024, 1, 1)): CacheEntry(utc(2024, 1, 1), utc(2024, 1, 1))}))
    result = runner.invoke(cli, ["-c", str(config), "cache"])
    assert "Notes: 1" in result.output

    result = runner.invoke(cli, ["-c", str(config), "cache", "--clear"])
    assert result.exit_code == 0
    assert not cache_path.exists()


def test_missing_config_file_fails(tmp_path):
    result = CliRunner().invoke(cli, ["-c", str(tmp_path / "nope.yaml"), "cache"])
    assert result.exit_code == 1
    assert "Config file not found" in result.output
