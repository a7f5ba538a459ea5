"""Position tracking for code map navigation.

The update rules are plain functions over :class:`Position` values so they can
be reasoned about (and tested) without a store. :class:`PositionTracker` keeps
one position per project and applies those rules.

The key rule is stickiness: entering the same file (or symbol) again keeps the
deeper fields, so the user lands back where they left off. Entering a
different file drops the symbol and definition.
"""

from dataclasses import replace
from typing import Dict, Optional

from .exceptions import UserError
from .models import DEFINITION_LIST, FILE_LIST, SYMBOL_LIST, DefinitionRecord, Position

_FIELDS = ("file", "symbol", "definition")


def advance_position(
    position: Position,
    file: Optional[str] = None,
    symbol: Optional[str] = None,
    definition: Optional[DefinitionRecord] = None,
) -> Position:
    """Apply a depth-raising update to ``position``.

    - no arguments: back to the file list (depth 0), fields kept.
    - file: depth 1; symbol and definition reset only if the file changed.
    - file and symbol: depth 2; definition reset only if the symbol changed.
    - file, symbol and definition: definition set unconditionally, depth 2.

    Raises:
        UserError: If a deeper field is given without the ones above it.
    """
    if file is None:
        if symbol is not None or definition is not None:
            raise UserError("A symbol or definition needs a file")
        return replace(position, depth=FILE_LIST)

    if file != position.file:
        position = Position(file=file, depth=position.depth)

    if symbol is None:
        if definition is not None:
            raise UserError("A definition needs a symbol")
        return replace(position, depth=SYMBOL_LIST)

    if symbol != position.symbol:
        position = replace(position, symbol=symbol, definition=None)

    if definition is not None:
        position = replace(position, definition=definition)
    return replace(position, depth=DEFINITION_LIST)


def clear_position_from(position: Position, depth: int) -> Position:
    """Null the position fields browsed at ``depth`` and below.

    The depth itself is kept. Used after deletions so a removed key is never
    read back.
    """
    cleared = {name: None for name in _FIELDS[depth:]}
    return replace(position, **cleared)


def retreat_position(position: Position) -> Position:
    """Go up one level, keeping every field for a later return."""
    if position.depth == FILE_LIST:
        return position
    return replace(position, depth=position.depth - 1)


class PositionTracker:
    """Per-project cursor state.

    Attributes:
        positions: Dict mapping project roots to their Position.
    """

    def __init__(self):
        self.positions: Dict[str, Position] = {}

    def get_position(self, project: str) -> Position:
        """Return the project's position, the file list if none was recorded."""
        return self.positions.get(project, Position())

    def set_position(
        self,
        project: str,
        file: Optional[str] = None,
        symbol: Optional[str] = None,
        definition: Optional[DefinitionRecord] = None,
    ) -> Position:
        position = advance_position(self.get_position(project), file, symbol, definition)
        self.positions[project] = position
        return position

    def clear_from(self, project: str, depth: int) -> Position:
        position = clear_position_from(self.get_position(project), depth)
        self.positions[project] = position
        return position

    def back(self, project: str) -> Position:
        position = retreat_position(self.get_position(project))
        self.positions[project] = position
        return position

    def restore(self, project: str, position: Position) -> None:
        """Install a position as-is (used when loading a saved map)."""
        if position.depth not in (FILE_LIST, SYMBOL_LIST, DEFINITION_LIST):
            raise UserError(f"Invalid depth: {position.depth}")
        self.positions[project] = position

    def rename_file(self, project: str, old_file: str, new_file: str) -> None:
        """Follow a file key rename."""
        position = self.get_position(project)
        if position.file == old_file:
            self.positions[project] = replace(position, file=new_file)
