"""Code Map Store - the per-project file -> symbol -> definitions tree.

The store owns every project's code map as nested insertion-ordered dicts and
the matching :class:`DiskState`. Each mutating method flips the project's dirty
flag. Lookups validate before anything is written, so a failing call leaves
the tree as it was.

Example:
    >>> store = CodeMapStore()
    >>> store.add_symbol('/p', 'main.c', 'run', [record])
    >>> store.get_symbol_list('/p', 'main.c')
    ['run']
    >>> store.disk_state('/p').dirty
    True
"""

import logging
from typing import Dict, Iterable, List, Set

from .exceptions import ConflictError, NotFoundError
from .models import Definition, DefinitionRecord, DiskState

logger = logging.getLogger(__name__)

# file -> symbol -> definitions
SymbolTable = Dict[str, List[Definition]]
CodeMap = Dict[str, SymbolTable]


def unique_records(records: Iterable[DefinitionRecord]) -> List[DefinitionRecord]:
    """Drop duplicate records, keeping the first occurrence."""
    seen: Set[DefinitionRecord] = set()
    result = []
    for record in records:
        if record not in seen:
            seen.add(record)
            result.append(record)
    return result


class CodeMapStore:
    """Hierarchical code maps and disk states, keyed by project root.

    Attributes:
        maps: Dict mapping project roots to their code map.
        disk_states: Dict mapping project roots to their DiskState.
    """

    def __init__(self):
        self.maps: Dict[str, CodeMap] = {}
        self.disk_states: Dict[str, DiskState] = {}

    # ------------------------------------------------------------------
    # Path lookups
    # ------------------------------------------------------------------

    def _project_map(self, project: str) -> CodeMap:
        """Return the project's map, creating it on first use."""
        if project not in self.maps:
            self.maps[project] = {}
        return self.maps[project]

    def _symbol_table(self, project: str, file: str) -> SymbolTable:
        table = self.maps.get(project, {}).get(file)
        if table is None:
            raise NotFoundError(f"File not in code map: {file}")
        return table

    def _definitions(self, project: str, file: str, symbol: str) -> List[Definition]:
        definitions = self._symbol_table(project, file).get(symbol)
        if definitions is None:
            raise NotFoundError(f"Symbol not in code map: {symbol} ({file})")
        return definitions

    def mark_dirty(self, project: str) -> None:
        self.disk_state(project).dirty = True

    def disk_state(self, project: str) -> DiskState:
        if project not in self.disk_states:
            self.disk_states[project] = DiskState()
        return self.disk_states[project]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def projects(self) -> List[str]:
        return list(self.maps)

    def get_file_list(self, project: str) -> List[str]:
        """Return the project's file keys in insertion order.

        An unknown project has no files.
        """
        return list(self.maps.get(project, {}))

    def get_symbol_list(self, project: str, file: str) -> List[str]:
        """Return the symbol names recorded under ``file``.

        Raises:
            NotFoundError: If the file is not in the map.
        """
        return list(self._symbol_table(project, file))

    def get_definition_list(self, project: str, file: str, symbol: str) -> List[Definition]:
        """Return copies of the definitions of ``symbol`` in ``file``.

        Raises:
            NotFoundError: If the file or symbol is not in the map.
        """
        return [Definition(d.record, d.hidden) for d in self._definitions(project, file, symbol)]

    def get_visible_definitions(
        self, project: str, file: str, symbol: str
    ) -> List[DefinitionRecord]:
        """Return the records of the non-hidden definitions of ``symbol``."""
        return [d.record for d in self._definitions(project, file, symbol) if not d.hidden]

    def has_file(self, project: str, file: str) -> bool:
        return file in self.maps.get(project, {})

    def has_symbol(self, project: str, file: str, symbol: str) -> bool:
        return symbol in self.maps.get(project, {}).get(file, {})

    def get_map(self, project: str) -> CodeMap:
        """Return a deep copy of the project's code map."""
        return {
            file: {
                symbol: [Definition(d.record, d.hidden) for d in definitions]
                for symbol, definitions in table.items()
            }
            for file, table in self.maps.get(project, {}).items()
        }

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_map(self, project: str, code_map: CodeMap) -> None:
        """Replace the project's whole map (used when loading from disk).

        Does not touch the disk state; the caller decides what loading means.
        """
        self.maps[project] = code_map

    def add_symbol(
        self,
        project: str,
        file: str,
        symbol: str,
        records: Iterable[DefinitionRecord],
    ) -> bool:
        """Insert ``symbol`` under ``file`` with all definitions visible.

        Creates the file entry when needed. An already present symbol is left
        untouched.

        Returns:
            True if the symbol was added.
        """
        table = self._project_map(project).setdefault(file, {})
        if symbol in table:
            return False
        table[symbol] = [Definition(record) for record in unique_records(records)]
        self.mark_dirty(project)
        logger.debug("Added %s (%d definitions) to %s", symbol, len(table[symbol]), file)
        return True

    def set_hidden(
        self,
        project: str,
        file: str,
        symbol: str,
        record: DefinitionRecord,
        hidden: bool,
    ) -> None:
        """Set the hidden flag of one definition.

        Raises:
            NotFoundError: If the record is not in the symbol's list.
        """
        for definition in self._definitions(project, file, symbol):
            if definition.record == record:
                definition.hidden = hidden
                self.mark_dirty(project)
                return
        raise NotFoundError(f"Definition not in code map: {record.location}")

    def show_all(self, project: str, file: str, symbol: str) -> List[DefinitionRecord]:
        """Unhide every definition of ``symbol``.

        Returns:
            The records that were hidden before the call, in list order.
        """
        shown = []
        for definition in self._definitions(project, file, symbol):
            if definition.hidden:
                definition.hidden = False
                shown.append(definition.record)
        if shown:
            self.mark_dirty(project)
        return shown

    def remove_file(self, project: str, file: str) -> None:
        """Delete ``file`` and everything below it."""
        self._symbol_table(project, file)
        del self.maps[project][file]
        self.mark_dirty(project)
        logger.debug("Removed file %s", file)

    def remove_symbol(self, project: str, file: str, symbol: str) -> None:
        """Delete ``symbol`` and its definitions from ``file``."""
        table = self._symbol_table(project, file)
        self._definitions(project, file, symbol)
        del table[symbol]
        self.mark_dirty(project)
        logger.debug("Removed symbol %s from %s", symbol, file)

    def replace_file_key(self, project: str, old_file: str, new_file: str) -> None:
        """Rename a file key, keeping its place in the file list.

        Raises:
            NotFoundError: If ``old_file`` is not in the map.
            ConflictError: If ``new_file`` is already in the map.
        """
        self._symbol_table(project, old_file)
        if old_file == new_file:
            return
        if self.has_file(project, new_file):
            raise ConflictError(f"File already in code map: {new_file}")
        self.maps[project] = {
            (new_file if file == old_file else file): table
            for file, table in self.maps[project].items()
        }
        self.mark_dirty(project)
        logger.debug("Replaced file %s with %s", old_file, new_file)

    def refresh_symbol_definitions(self, project: str, file: str, symbol: str, query) -> int:
        """Re-query ``symbol`` and replace its definitions.

        All hidden flags are reset: old records cannot be matched to the new
        ones reliably.

        Args:
            query: A definition query service (see ``codemap.query``).

        Returns:
            Number of definitions now recorded for the symbol.
        """
        definitions = self._definitions(project, file, symbol)
        records = unique_records(query.query(symbol, exact_match=True))
        definitions[:] = [Definition(record) for record in records]
        self.mark_dirty(project)
        return len(definitions)

