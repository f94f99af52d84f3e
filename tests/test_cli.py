"""Tests for the command-line interface."""
import json

import pytest
from rich.console import Console

from resumewright import __version__, cli
from resumewright.cli import create_parser, main
from resumewright.config import DEFAULT_STORAGE_KEY


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Point HOME and the working directory at an empty temp tree."""
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    monkeypatch.setattr(cli, "console", Console(width=200))
    return tmp_path


@pytest.fixture
def run(isolated):
    data_dir = isolated / "data"

    def _run(*argv):
        return main(["--backend", "file", "--data-dir", str(data_dir), *argv])

    _run.data_dir = data_dir
    return _run


class TestParser:
    """Tests for argument parsing."""

    def test_update_arguments(self):
        args = create_parser().parse_args(
            ["update", "vidA", "600", "3600", "--title", "Sermon 1", "--show", "Sunday Service"]
        )

        assert args.content_id == "vidA"
        assert args.current_time == 600.0
        assert args.duration == 3600.0
        assert args.show == "Sunday Service"

    def test_update_requires_title(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["update", "vidA", "600", "3600"])

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            create_parser().parse_args(["--version"])

        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_unknown_backend_rejected(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--backend", "redis", "list"])


class TestCommands:
    """End-to-end command tests against a file backend."""

    def test_no_command_prints_help(self, isolated, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()

    def test_update_then_show(self, run, capsys):
        assert run("update", "vidA", "600", "3600", "--title", "Sermon 1", "--show", "Sunday Service") == 0
        assert "Saved" in capsys.readouterr().out

        assert run("show", "vidA") == 0
        out = capsys.readouterr().out
        assert "Sermon 1" in out
        assert "10:00 / 1:00:00 (16%)" in out

    def test_update_persists_under_storage_key(self, run):
        run("update", "vidA", "600", "3600", "--title", "Sermon 1")

        payload = json.loads((run.data_dir / f"{DEFAULT_STORAGE_KEY}.json").read_text(encoding="utf-8"))

        assert payload["vidA"]["currentTime"] == 600.0

    def test_update_outside_band(self, run, capsys):
        assert run("update", "vidA", "3500", "3600", "--title", "Sermon 1") == 0
        assert "not in progress" in capsys.readouterr().out

    def test_show_missing(self, run, capsys):
        assert run("show", "nothing") == 1
        assert "No saved progress" in capsys.readouterr().out

    def test_list(self, run, capsys):
        run("update", "vidA", "600", "3600", "--title", "Alpha")
        run("update", "vidB", "900", "3600", "--title", "Beta", "--show", "Series")
        capsys.readouterr()

        assert run("list") == 0
        out = capsys.readouterr().out
        assert "vidA" in out
        assert "vidB" in out

        assert run("list", "--show", "series") == 0
        out = capsys.readouterr().out
        assert "vidB" in out
        assert "vidA" not in out

    def test_remove(self, run, capsys):
        run("update", "vidA", "600", "3600", "--title", "Alpha")
        capsys.readouterr()

        assert run("remove", "vidA") == 0
        assert "Removed" in capsys.readouterr().out
        assert run("show", "vidA") == 1

    def test_clear_requires_confirmation(self, run, capsys):
        run("update", "vidA", "600", "3600", "--title", "Alpha")

        assert run("clear") == 1
        assert run("show", "vidA") == 0

    def test_clear_show(self, run, capsys):
        run("update", "e1", "600", "3600", "--title", "One", "--show", "Series")
        run("update", "e2", "700", "3600", "--title", "Two", "--show", "Series")
        run("update", "m", "800", "3600", "--title", "Movie")
        capsys.readouterr()

        assert run("clear", "--show", "Series", "--yes") == 0
        assert "Removed 2 item(s)" in capsys.readouterr().out
        assert run("show", "m") == 0

    def test_stats(self, run, capsys):
        for index in range(3):
            run("update", f"e{index}", "3000", "3600", "--title", f"Episode {index}", "--show", "Series")
        capsys.readouterr()

        assert run("stats") == 0
        out = capsys.readouterr().out
        assert "Watch Statistics" in out
        assert "Binge-watching: Series" in out

    def test_sqlite_backend(self, isolated, capsys):
        data_dir = str(isolated / "db")

        assert main(["--backend", "sqlite", "--data-dir", data_dir,
                     "update", "vidA", "600", "3600", "--title", "Alpha"]) == 0
        assert main(["--backend", "sqlite", "--data-dir", data_dir, "show", "vidA"]) == 0
        assert (isolated / "db" / "progress.db").exists()


class TestConfigCommands:
    """Tests for config subcommands."""

    def test_init_project(self, isolated, capsys):
        assert main(["config", "init", "--project"]) == 0

        assert (isolated / "work" / ".resumewright.yaml").exists()
        assert "Wrote default configuration" in capsys.readouterr().out

    def test_init_user(self, isolated):
        assert main(["config", "init"]) == 0
        assert (isolated / "home" / ".resumewright" / "config.yaml").exists()

    def test_project_config_is_used(self, isolated, capsys):
        (isolated / "work" / ".resumewright.yaml").write_text(
            "store:\n  backend: memory\n", encoding="utf-8"
        )

        assert main(["config", "show"]) == 0
        assert "backend: memory" in capsys.readouterr().out

    def test_explicit_config_path(self, isolated, capsys):
        config_path = isolated / "custom.yaml"
        config_path.write_text("store:\n  continue_watching_limit: 3\n", encoding="utf-8")

        assert main(["--config", str(config_path), "config", "show"]) == 0
        assert "continue_watching_limit: 3" in capsys.readouterr().out

    def test_mistyped_config_value_is_a_warning(self, isolated, capsys):
        config_path = isolated / "typo.yaml"
        config_path.write_text(
            "store:\n  min_percent: five\nlogging:\n  log_level: 5\n", encoding="utf-8"
        )

        assert main(["--config", str(config_path), "--backend", "memory", "list"]) == 0
        out = capsys.readouterr().out
        assert "Config warning:" in out
        assert "store.min_percent" in out
        assert "logging.log_level" in out

    def test_invalid_config_value_is_an_error(self, isolated, capsys):
        (isolated / "work" / ".resumewright.yaml").write_text(
            "store:\n  min_percent: 90\n  max_percent: 10\n", encoding="utf-8"
        )

        assert main(["list"]) == 1
        assert "Error" in capsys.readouterr().out
