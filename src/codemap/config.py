"""Configuration for the code map, read from a project's pyproject.toml.

Expected format in pyproject.toml:
    [tool.codemap]
    index_file = ".codemap-index.json"
    map_file = ".codemap/session.json"
    focus = "jump"
    save_on_exit = true
    ignore = ["generated", "*.pb.go"]
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

DEFAULT_INDEX_FILE = ".codemap-index.json"
DEFAULT_MAP_FILE = ".codemap/session.json"

_TYPES = {
    "index_file": str,
    "map_file": str,
    "focus": str,
    "save_on_exit": bool,
    "ignore": list,
}


@dataclass
class CodeMapConfig:
    """Settings for one project.

    Attributes:
        index_file: Definition index path, relative to the project root.
        map_file: Default saved map path, relative to the project root.
        focus: Focus mode passed to the host when jumping to a definition.
        save_on_exit: Answer given by non-interactive hosts when asked to
            save dirty maps on exit.
        ignore: Extra patterns the indexer skips.
    """

    index_file: str = DEFAULT_INDEX_FILE
    map_file: str = DEFAULT_MAP_FILE
    focus: str = "jump"
    save_on_exit: bool = True
    ignore: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CodeMapConfig":
        """Build a config from a [tool.codemap] table.

        Unknown keys are skipped. A bare string for ``ignore`` is one pattern;
        any other value of the wrong type is reported and left at its default.
        """
        values = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            if f.name == "ignore" and isinstance(value, str):
                value = [value]
            if not isinstance(value, _TYPES[f.name]) or (
                f.name == "ignore" and not all(isinstance(item, str) for item in value)
            ):
                logger.warning("Ignoring invalid [tool.codemap] %s: %r", f.name, value)
                continue
            values[f.name] = value
        return cls(**values)

    def resolve(self, root: str, relative: str) -> str:
        """Resolve a configured path against the project root."""
        path = Path(relative)
        if not path.is_absolute():
            path = Path(root) / path
        return str(path)


def _parse_toml(content: str) -> Dict[str, Any]:
    # Try to import tomllib (Python 3.11+) or toml
    try:
        import tomllib

        return tomllib.loads(content)
    except ImportError:
        import toml

        return toml.loads(content)


def load_config(root: str, config_path: str = None) -> CodeMapConfig:
    """Load the [tool.codemap] section for the project at ``root``.

    Missing files or sections give the defaults. A file that can't be parsed
    is reported and ignored.

    Args:
        root: Project root directory.
        config_path: Explicit path (defaults to root/pyproject.toml).
    """
    path = Path(config_path) if config_path else Path(root) / "pyproject.toml"
    if not path.exists():
        return CodeMapConfig()

    try:
        data = _parse_toml(path.read_text(encoding="utf-8"))
    except Exception as e:
        logger.warning("Ignoring unreadable config %s: %s", path, e)
        return CodeMapConfig()

    section = data.get("tool", {}).get("codemap", {})
    return CodeMapConfig.from_dict(section)
