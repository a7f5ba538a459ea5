"""Data models for the code map.

A code map is a three level tree: file -> symbol -> definitions. The leaves are
:class:`Definition` entries wrapping an immutable :class:`DefinitionRecord`
returned by a definition query service, plus a ``hidden`` flag.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

# Depths of the navigation state machine
FILE_LIST = 0
SYMBOL_LIST = 1
DEFINITION_LIST = 2

DEPTH_NAMES = {
    FILE_LIST: "files",
    SYMBOL_LIST: "symbols",
    DEFINITION_LIST: "definitions",
}


@dataclass(frozen=True)
class DefinitionRecord:
    """A single definition location returned by a query service.

    Records are value objects: two records with the same fields are equal and
    hash the same, which is what duplicate detection and hide/show rely on.

    Attributes:
        name: Symbol name (e.g., 'process_payment').
        path: File containing the definition, as reported by the index.
        line: Line number of the definition (1-indexed).
        kind: Symbol type ('function', 'class', 'method', ...).
        signature: Definition signature if known.
        parent: Containing class for methods.

    Example:
        >>> record = DefinitionRecord(name='run', path='main.c', line=12, kind='function')
        >>> record.location
        'main.c:12'
    """

    name: str
    path: str
    line: int
    kind: Optional[str] = None
    signature: Optional[str] = None
    parent: Optional[str] = None

    @property
    def location(self) -> str:
        return f"{self.path}:{self.line}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert the record to a JSON-friendly dictionary."""
        result: Dict[str, Any] = {"name": self.name, "path": self.path, "line": self.line}
        if self.kind is not None:
            result["kind"] = self.kind
        if self.signature is not None:
            result["signature"] = self.signature
        if self.parent is not None:
            result["parent"] = self.parent
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DefinitionRecord":
        return cls(
            name=data["name"],
            path=data["path"],
            line=int(data["line"]),
            kind=data.get("kind"),
            signature=data.get("signature"),
            parent=data.get("parent"),
        )


@dataclass
class Definition:
    """A definition record inside a symbol's list, with its hidden flag."""

    record: DefinitionRecord
    hidden: bool = False


@dataclass(frozen=True)
class Position:
    """Where navigation currently is inside one project's code map.

    Attributes:
        file: Current file key, or None.
        symbol: Current symbol name, or None.
        definition: Current definition record, or None.
        depth: 0 (file list), 1 (symbol list) or 2 (definition list).
    """

    file: Optional[str] = None
    symbol: Optional[str] = None
    definition: Optional[DefinitionRecord] = None
    depth: int = FILE_LIST

    def field_at(self, depth: int):
        """Return the position field browsed at ``depth``."""
        return (self.file, self.symbol, self.definition)[depth]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "symbol": self.symbol,
            "definition": self.definition.to_dict() if self.definition else None,
            "depth": self.depth,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        definition = data.get("definition")
        return cls(
            file=data.get("file"),
            symbol=data.get("symbol"),
            definition=DefinitionRecord.from_dict(definition) if definition else None,
            depth=int(data.get("depth", FILE_LIST)),
        )


@dataclass
class DiskState:
    """Whether a project's map differs from disk, and where it lives."""

    dirty: bool = False
    path: Optional[str] = None
