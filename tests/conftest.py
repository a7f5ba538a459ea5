"""Pytest fixtures for code map tests."""

from pathlib import Path

import pytest

from codemap.models import DefinitionRecord
from codemap.workspace import Workspace


class StaticQuery:
    """Query service answering from a fixed name -> records dict."""

    def __init__(self, definitions=None):
        self.definitions = dict(definitions or {})
        self.calls = []

    def query(self, symbol_name, exact_match=True):
        self.calls.append(symbol_name)
        return list(self.definitions.get(symbol_name, []))


class RecordingHost:
    """Host that remembers every location it was asked to open."""

    def __init__(self, project, current_file=None):
        self.project = project
        self.current_file = current_file
        self.opened = []

    def open_location(self, path, line, focus):
        self.opened.append((path, line, focus))

    def current_buffer_file(self):
        return self.current_file

    def project_root_of(self, path):
        return self.project


@pytest.fixture
def rec1():
    return DefinitionRecord(name="run", path="main.c", line=12, kind="function")


@pytest.fixture
def run_records():
    """Three definitions of 'run' across the project."""
    return [
        DefinitionRecord(name="run", path="main.c", line=12, kind="function"),
        DefinitionRecord(name="run", path="lib/worker.c", line=40, kind="function"),
        DefinitionRecord(name="run", path="lib/legacy.c", line=7, kind="function"),
    ]


@pytest.fixture
def query(run_records):
    return StaticQuery(
        {
            "run": run_records,
            "setup": [DefinitionRecord(name="setup", path="main.c", line=3, kind="function")],
            "Config": [DefinitionRecord(name="Config", path="config.h", line=1, kind="struct")],
        }
    )


@pytest.fixture
def project(tmp_path: Path) -> str:
    """A project root with a couple of real files."""
    (tmp_path / "main.c").write_text("int setup(void) {\n}\n\nint run(void) {\n}\n")
    (tmp_path / "config.h").write_text("struct Config {\n};\n")
    return str(tmp_path)


@pytest.fixture
def host(project):
    return RecordingHost(project, current_file=str(Path(project) / "main.c"))


@pytest.fixture
def answers():
    """Answers the confirm callback gives, in order; empty means yes."""
    return []


@pytest.fixture
def prompts():
    return []


@pytest.fixture
def workspace(query, host, answers, prompts):
    def confirm(prompt):
        prompts.append(prompt)
        return answers.pop(0) if answers else True

    return Workspace(query, host=host, confirm=confirm)
