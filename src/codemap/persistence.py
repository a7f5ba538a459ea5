"""Saving and loading code maps.

A saved code map is a JSON object with three fields:

    {
      "project-root": "/abs/path/to/project",
      "map": {
        "main.c": {
          "run": [{"record": {"name": "run", "path": "main.c", "line": 12}, "hidden": false}]
        }
      },
      "position": {"file": "main.c", "symbol": "run", "definition": null, "depth": 2}
    }

JSON objects keep insertion order, so files, symbols and definitions come back
in the order they were saved.
"""

import json
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .exceptions import CorruptedFileError
from .models import (
    DEFINITION_LIST,
    FILE_LIST,
    SYMBOL_LIST,
    Definition,
    DefinitionRecord,
    Position,
)
from .store import CodeMap

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


@dataclass
class SavedMap:
    """The contents of one saved code map file."""

    project_root: str
    code_map: CodeMap
    position: Position


def serialize(project_root: str, code_map: CodeMap, position: Position) -> Dict[str, Any]:
    return {
        "version": FORMAT_VERSION,
        "project-root": project_root,
        "map": {
            file: {
                symbol: [{"record": d.record.to_dict(), "hidden": d.hidden} for d in definitions]
                for symbol, definitions in table.items()
            }
            for file, table in code_map.items()
        },
        "position": position.to_dict(),
    }


def _position_problem(position: Position) -> Optional[str]:
    if position.depth not in (FILE_LIST, SYMBOL_LIST, DEFINITION_LIST):
        return f"invalid depth {position.depth}"
    if position.symbol is not None and position.file is None:
        return "position symbol without a file"
    if position.definition is not None and position.symbol is None:
        return "position definition without a symbol"
    return None


def deserialize(data: Any, path: str = "") -> SavedMap:
    """Build a SavedMap from parsed JSON.

    Raises:
        CorruptedFileError: If ``project-root`` or ``position`` is missing,
            any part of the map is malformed, or the position has a bad
            depth or a deeper field without the ones above it. An empty map
            is fine.
    """
    if not isinstance(data, dict) or "project-root" not in data or "position" not in data:
        raise CorruptedFileError(f"Corrupted code map file: {path}", path=path)

    try:
        code_map: CodeMap = {}
        for file, table in (data.get("map") or {}).items():
            code_map[file] = {
                symbol: [
                    Definition(DefinitionRecord.from_dict(d["record"]), bool(d.get("hidden")))
                    for d in definitions
                ]
                for symbol, definitions in table.items()
            }
        position = Position.from_dict(data["position"] or {})
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise CorruptedFileError(f"Corrupted code map file: {path} ({e})", path=path)

    problem = _position_problem(position)
    if problem:
        raise CorruptedFileError(f"Corrupted code map file: {path} ({problem})", path=path)

    return SavedMap(project_root=data["project-root"], code_map=code_map, position=position)


def save_map(path: str, project_root: str, code_map: CodeMap, position: Position) -> None:
    """Write a code map file atomically."""
    write_json_atomic(path, serialize(project_root, code_map, position))
    logger.info("Saved code map of %s to %s", project_root, path)


def load_map(path: str) -> SavedMap:
    """Read a code map file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        CorruptedFileError: If the file is not a valid code map.
    """
    with open(path, encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise CorruptedFileError(f"Corrupted code map file: {path} ({e})", path=path)
    saved = deserialize(data, path)
    logger.info("Loaded code map of %s from %s", saved.project_root, path)
    return saved


def write_json_atomic(output_path: str, data: Dict[str, Any]) -> None:
    """Write JSON to a temp file next to ``output_path``, then move it in place.

    A full disk or an interrupted process never leaves a half-written file.
    """
    output_dir = os.path.dirname(os.path.abspath(output_path))
    os.makedirs(output_dir, exist_ok=True)
    tmp_fd = None
    tmp_path = None
    try:
        tmp_fd, tmp_path = tempfile.mkstemp(suffix=".json.tmp", dir=output_dir, prefix=".codemap_")
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
            tmp_fd = None  # os.fdopen takes ownership
            json.dump(data, f, indent=2)
        shutil.move(tmp_path, output_path)
        tmp_path = None
    finally:
        if tmp_fd is not None:
            os.close(tmp_fd)
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
