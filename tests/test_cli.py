"""Tests for the command line interface."""

import argparse
import json
import os
from pathlib import Path

import pytest

from codemap.cli import CliHost, add_arguments, main, make_prompt


@pytest.fixture
def c_project(tmp_path: Path) -> str:
    """A small C project with an index already built."""
    (tmp_path / "main.c").write_text("int setup(void) {\n}\n\nint run(void) {\n}\n")
    (tmp_path / "lib").mkdir()
    (tmp_path / "lib" / "worker.c").write_text("int run(void)\n{\n    return 0;\n}\n")
    main(["-p", str(tmp_path), "index"])
    return str(tmp_path)


def run(capsys, project, *args, yes=True):
    """Run one command; returns the exit code (0 on success), stdout and stderr."""
    argv = ["-p", project, "--no-color"] + (["-y"] if yes else []) + list(args)
    try:
        main(argv)
        code = 0
    except SystemExit as e:
        code = e.code
    captured = capsys.readouterr()
    return code, captured.out, captured.err


class TestCLIHelp:
    """Tests for CLI help and version output."""

    def test_main_help(self):
        """Test that main help exits cleanly."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--help"])
        assert exc_info.value.code == 0

    def test_main_version(self, capsys):
        """Test that the version is displayed."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert "codemap 1.0.0" in capsys.readouterr().out

    def test_no_command_shows_help(self, capsys):
        """Test that running without a command shows help."""
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0
        assert "see-symbol" in capsys.readouterr().out

    @pytest.mark.parametrize("command", ["index", "see-symbol", "hide", "keep", "replace-file"])
    def test_command_help(self, command):
        """Test subcommand help."""
        with pytest.raises(SystemExit) as exc_info:
            main([command, "--help"])
        assert exc_info.value.code == 0


class TestAddArguments:
    """Tests for the add_arguments helper."""

    def test_keys_are_optional(self):
        """Test that bulk commands accept no keys."""
        parser = argparse.ArgumentParser()
        add_arguments(parser)
        args = parser.parse_args(["-p", "/p", "hide"])
        assert args.command == "hide"
        assert args.keys == []
        assert args.project == "/p"

    def test_see_symbol(self):
        """Test see-symbol's positional arguments."""
        parser = argparse.ArgumentParser()
        add_arguments(parser)
        args = parser.parse_args(["see-symbol", "main.c", "run"])
        assert (args.file, args.symbol) == ("main.c", "run")


class TestPrompt:
    """Tests for the confirm callback."""

    def test_assume_yes(self):
        """Test that --yes accepts without reading input."""
        assert make_prompt(True)("Delete?") is True

    @pytest.mark.parametrize("answer,expected", [("y", True), ("YES", True), ("", False), ("n", False)])
    def test_answers(self, monkeypatch, answer, expected):
        """Test reading an answer."""
        monkeypatch.setattr("builtins.input", lambda prompt: answer)
        assert make_prompt(False)("Delete?") is expected

    def test_eof_is_no(self, monkeypatch):
        """Test that closed input declines."""

        def closed(prompt):
            raise EOFError

        monkeypatch.setattr("builtins.input", closed)
        assert make_prompt(False)("Delete?") is False

    def test_cli_host_prints_location(self, capsys):
        """Test that jumping prints path:line."""
        host = CliHost("/p")
        host.open_location("/p/main.c", 4, "jump")
        assert capsys.readouterr().out == "/p/main.c:4\n"
        assert host.opened == "/p/main.c:4"


class TestCommands:
    """End-to-end tests over a real project."""

    def test_index_written(self, c_project):
        """Test that the index lands at the default location."""
        with open(os.path.join(c_project, ".codemap-index.json")) as f:
            data = json.load(f)
        assert sorted(data["files"]) == ["lib/worker.c", "main.c"]

    def test_missing_index(self, tmp_path, capsys):
        """Test that commands need an index."""
        code, _, err = run(capsys, str(tmp_path), "ls")
        assert code == 1
        assert "codemap index" in err

    def test_see_symbol_saves_map(self, c_project, capsys):
        """Test that adding a symbol lists its definitions and saves the map."""
        code, out, _ = run(capsys, c_project, "see-symbol", "main.c", "run")

        assert code == 0
        assert "[definitions] main.c run" in out
        assert "main.c:4" in out
        assert "lib/worker.c:1" in out
        with open(os.path.join(c_project, ".codemap", "session.json")) as f:
            saved = json.load(f)
        assert saved["project-root"] == c_project
        assert list(saved["map"]["main.c"]) == ["run"]

    def test_unknown_symbol(self, c_project, capsys):
        """Test that a symbol without definitions is an error."""
        code, _, err = run(capsys, c_project, "see-symbol", "main.c", "nothing")
        assert code == 1
        assert "No definition found for nothing" in err

    def test_jump_hide_and_status(self, c_project, capsys):
        """Test jumping to a definition, hiding another and showing the state."""
        run(capsys, c_project, "see-symbol", "main.c", "run")

        _, out, _ = run(capsys, c_project, "forward", "main.c:4")
        assert out.strip() == f"{os.path.join(c_project, 'main.c')}:4"

        _, out, _ = run(capsys, c_project, "hide", "lib/worker.c:1")
        assert "lib/worker.c:1" not in out
        assert "> " in out

        _, out, _ = run(capsys, c_project, "ls", "--all")
        assert "lib/worker.c:1" in out
        assert "(hidden)" in out

        _, out, _ = run(capsys, c_project, "status")
        assert "definition: main.c:4" in out

        _, out, err = run(capsys, c_project, "show-all")
        assert "1 definitions shown again" in err
        assert "lib/worker.c:1" in out

    def test_delete_declined(self, c_project, capsys, monkeypatch):
        """Test that answering no to a delete keeps the symbol."""
        run(capsys, c_project, "see-symbol", "main.c", "run")
        run(capsys, c_project, "see-symbol", "main.c", "setup")
        run(capsys, c_project, "back")
        monkeypatch.setattr("builtins.input", lambda prompt: "n")

        _, out, err = run(capsys, c_project, "delete", "setup", yes=False)

        assert "Aborted" in err
        assert "setup" in out

    def test_hide_in_symbol_list(self, c_project, capsys):
        """Test that hide outside the definition list is a user error."""
        run(capsys, c_project, "see-symbol", "main.c", "run")
        run(capsys, c_project, "back")
        code, _, err = run(capsys, c_project, "hide", "run")
        assert code == 1
        assert "Hide is for definitions only" in err

    def test_replace_file_and_missing(self, c_project, capsys):
        """Test renaming a file that moved and listing missing files."""
        run(capsys, c_project, "see-symbol", "main.c", "run")
        run(capsys, c_project, "see-symbol", "gone.c", "run")
        run(capsys, c_project, "back")
        run(capsys, c_project, "back")

        _, out, _ = run(capsys, c_project, "missing")
        assert out.split() == ["gone.c"]

        _, out, _ = run(capsys, c_project, "replace-file", "gone.c", "lib/worker.c")
        assert "lib/worker.c" in out
        _, out, err = run(capsys, c_project, "missing")
        assert "Nothing missing" in err

    def test_map_of_other_project_kept(self, c_project, capsys, tmp_path):
        """Test that a map saved for another root is refused, not overwritten."""
        map_path = os.path.join(c_project, "other-map.json")
        saved = {
            "project-root": str(tmp_path / "old"),
            "map": {
                "a.c": {"foo": [{"record": {"name": "foo", "path": "a.c", "line": 1}, "hidden": False}]}
            },
            "position": {"depth": 0},
        }
        with open(map_path, "w") as f:
            json.dump(saved, f)

        code, _, err = run(capsys, c_project, "-m", map_path, "see-symbol", "main.c", "run")

        assert code == 1
        assert f"pass -p {tmp_path / 'old'}" in err
        with open(map_path) as f:
            assert json.load(f) == saved
