"""Workspace - one editing session over any number of project code maps.

The workspace ties together the store, the position tracker and the marks,
and implements the operations a user drives while exploring code:

- navigation: ``see_symbol``, ``see_file``, ``forward``, ``backward``
- annotation: ``hide``, ``show_all``, ``delete_items``, ``keep``,
  ``mark_missing``, marks
- maintenance: ``replace_file``, ``update``
- disk: ``save``, ``load``, ``ask_to_save``

Every operation validates before it writes. A declined confirmation returns
an empty result and leaves everything as it was.

Example:
    >>> workspace = Workspace(CodeIndex.load('.codemap-index.json'))
    >>> workspace.see_symbol('/my/project', 'src/main.c', 'run')
    Position(file='src/main.c', symbol='run', definition=None, depth=2)
    >>> workspace.save('/my/project', '/my/project/.codemap/session.json')
"""

import atexit
import logging
import os
from dataclasses import replace
from typing import Any, Callable, Hashable, Iterable, List, Optional, Protocol, Set

from .config import CodeMapConfig
from .exceptions import NotFoundError, UserError
from .models import DEFINITION_LIST, FILE_LIST, SYMBOL_LIST, DefinitionRecord, Position
from .persistence import load_map, save_map
from .position import PositionTracker
from .query import DefinitionQueryService
from .selection import ListKey, MarkRegistry, Selection, complement, resolve_targets
from .store import CodeMap, CodeMapStore

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[str], bool]


class Host(Protocol):
    """The editor (or other front end) the workspace runs inside."""

    def open_location(self, path: str, line: int, focus: str) -> None:
        ...

    def current_buffer_file(self) -> Optional[str]:
        ...

    def project_root_of(self, path: str) -> str:
        ...


def _accept(prompt: str) -> bool:
    return True


def _valid_position(code_map: CodeMap, position: Position) -> Position:
    """Drop position fields that point outside ``code_map``.

    Works on a parsed map before it is installed, so it never touches a store.
    The position's field nesting is already checked by ``deserialize``.
    """
    table = code_map.get(position.file) if position.file is not None else None
    if position.file is not None and table is None:
        return Position(depth=FILE_LIST)
    definitions = table.get(position.symbol) if table is not None else None
    if position.symbol is not None and definitions is None:
        position = replace(position, symbol=None, definition=None)
    elif position.definition is not None and position.definition not in [
        d.record for d in definitions if not d.hidden
    ]:
        position = replace(position, definition=None)
    if position.file is None:
        position = replace(position, depth=FILE_LIST)
    elif position.symbol is None:
        position = replace(position, depth=min(position.depth, SYMBOL_LIST))
    return position


class Workspace:
    """Code maps, positions and marks for every project of a session.

    Attributes:
        query: Definition query service used to add and refresh symbols.
        host: Optional host for project resolution and jumping.
        confirm: Callback asked before destructive operations.
        config: Session configuration.
        store: The code map store.
        tracker: The position tracker.
        marks: Transient marks.
    """

    def __init__(
        self,
        query: DefinitionQueryService,
        host: Optional[Host] = None,
        confirm: Optional[ConfirmFn] = None,
        config: Optional[CodeMapConfig] = None,
    ):
        self.query = query
        self.host = host
        self.confirm = confirm or _accept
        self.config = config or CodeMapConfig()
        self.store = CodeMapStore()
        self.tracker = PositionTracker()
        self.marks = MarkRegistry()
        self._exit_hook_installed = False

    # ------------------------------------------------------------------
    # Projects, keys and lists
    # ------------------------------------------------------------------

    def resolve_project(self, project: Optional[str] = None) -> str:
        """Return the absolute project root, asking the host when omitted."""
        if project is None:
            if self.host is None:
                raise UserError("No project given and no host to ask")
            current = self.host.current_buffer_file()
            if not current:
                raise UserError("Current buffer is not visiting a file")
            project = self.host.project_root_of(current)
        return os.path.normpath(os.path.abspath(project))

    def file_key(self, project: str, path: str) -> str:
        """Key for ``path`` in the map: project-relative when inside it."""
        if not os.path.isabs(path):
            return os.path.normpath(path)
        path = os.path.normpath(path)
        relative = os.path.relpath(path, project)
        if relative == os.curdir or relative.startswith(os.pardir):
            return path
        return relative

    def position(self, project: Optional[str] = None) -> Position:
        return self.tracker.get_position(self.resolve_project(project))

    @staticmethod
    def _list_key(position: Position) -> ListKey:
        if position.depth == FILE_LIST:
            return (FILE_LIST, None, None)
        if position.depth == SYMBOL_LIST:
            return (SYMBOL_LIST, position.file, None)
        return (DEFINITION_LIST, position.file, position.symbol)

    def current_items(self, project: Optional[str] = None) -> List[Any]:
        """Keys listed at the current depth: files, symbols or visible records."""
        project = self.resolve_project(project)
        position = self.tracker.get_position(project)
        if position.depth == FILE_LIST:
            return self.store.get_file_list(project)
        if position.file is None:
            return []
        if position.depth == SYMBOL_LIST:
            return self.store.get_symbol_list(project, position.file)
        if position.symbol is None:
            return []
        return self.store.get_visible_definitions(project, position.file, position.symbol)

    def parse_keys(self, project: Optional[str], keys: Iterable[str]) -> List[Any]:
        """Turn typed keys into keys of the current list.

        Definitions are written ``path:line``; files may be absolute paths.

        Raises:
            NotFoundError: If no visible definition is at a typed location.
        """
        project = self.resolve_project(project)
        position = self.tracker.get_position(project)
        if position.depth == FILE_LIST:
            return [self.file_key(project, key) for key in keys]
        if position.depth == SYMBOL_LIST:
            return list(keys)
        by_location = {record.location: record for record in self.current_items(project)}
        records = []
        for key in keys:
            if key not in by_location:
                raise NotFoundError(f"No visible definition at {key}")
            records.append(by_location[key])
        return records

    def file_list(self, project: Optional[str] = None) -> List[str]:
        return self.store.get_file_list(self.resolve_project(project))

    def symbol_list(self, project: Optional[str], file: str) -> List[str]:
        project = self.resolve_project(project)
        return self.store.get_symbol_list(project, self.file_key(project, file))

    def definition_list(self, project: Optional[str], file: str, symbol: str):
        project = self.resolve_project(project)
        return self.store.get_definition_list(project, self.file_key(project, file), symbol)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def see_symbol(self, project: Optional[str], file: str, symbol: str) -> Position:
        """Add ``symbol`` under ``file`` if needed and browse its definitions.

        Raises:
            NotFoundError: If the query service knows no definition of it.
        """
        project = self.resolve_project(project)
        file = self.file_key(project, file)
        if not self.store.has_symbol(project, file, symbol):
            records = self.query.query(symbol, exact_match=True)
            if not records:
                raise NotFoundError(f"No definition found for {symbol}")
            self.store.add_symbol(project, file, symbol, records)
            logger.info("Added %s to the code map of %s", symbol, project)
        return self.tracker.set_position(project, file, symbol)

    def see_file(self, project: Optional[str], file: str) -> Position:
        """Browse the symbols recorded under ``file``.

        Raises:
            NotFoundError: If the file is not in the map.
        """
        project = self.resolve_project(project)
        file = self.file_key(project, file)
        if not self.store.has_file(project, file):
            raise NotFoundError(f"{file} is not in the code map; add a symbol first")
        return self.tracker.set_position(project, file)

    def forward(self, project: Optional[str], selected_key: Any) -> Position:
        """Enter the selected item, or jump to it in the definition list.

        An empty selection does nothing.

        Raises:
            NotFoundError: If the key is not in the current list.
        """
        project = self.resolve_project(project)
        position = self.tracker.get_position(project)
        if selected_key is None or selected_key == "":
            return position
        if selected_key not in self.current_items(project):
            raise NotFoundError(f"Not in the current list: {selected_key}")

        if position.depth == FILE_LIST:
            return self.tracker.set_position(project, selected_key)
        if position.depth == SYMBOL_LIST:
            return self.tracker.set_position(project, position.file, selected_key)
        position = self.tracker.set_position(
            project, position.file, position.symbol, selected_key
        )
        self.jump(project, selected_key)
        return position

    def backward(self, project: Optional[str] = None) -> Position:
        return self.tracker.back(self.resolve_project(project))

    def jump(self, project: str, record: DefinitionRecord) -> Optional[str]:
        """Open ``record`` in the host.

        Returns:
            The absolute path opened, or None without a host.
        """
        path = record.path
        if not os.path.isabs(path):
            path = os.path.join(project, path)
        if self.host is None:
            logger.debug("No host to open %s:%d in", path, record.line)
            return None
        self.host.open_location(path, record.line, self.config.focus)
        return path

    def update(self, project: Optional[str] = None) -> int:
        """Re-query every symbol of the project's map.

        Hidden flags are all reset and the current definition is forgotten.

        Returns:
            Number of symbols refreshed, 0 if the user declined.
        """
        project = self.resolve_project(project)
        if not self.confirm(f"Update the code map of {project}? Hidden definitions will show again."):
            logger.info("Update of %s aborted", project)
            return 0
        count = 0
        for file in self.store.get_file_list(project):
            for symbol in self.store.get_symbol_list(project, file):
                self.store.refresh_symbol_definitions(project, file, symbol, self.query)
                count += 1
        self.tracker.clear_from(project, DEFINITION_LIST)
        self.store.mark_dirty(project)
        logger.info("Updated %d symbols in %s", count, project)
        return count

    def replace_file(self, project: Optional[str], old_file: str, new_file: str) -> str:
        """Rename a file in the map, e.g. after it moved on disk.

        Raises:
            NotFoundError: If ``old_file`` is not in the map.
            ConflictError: If ``new_file`` already is.
        """
        project = self.resolve_project(project)
        old_file = self.file_key(project, old_file)
        new_file = self.file_key(project, new_file)
        self.store.replace_file_key(project, old_file, new_file)
        self.tracker.rename_file(project, old_file, new_file)
        self.marks.rename_file(project, old_file, new_file)
        return new_file

    # ------------------------------------------------------------------
    # Marks and selections
    # ------------------------------------------------------------------

    def _check_in_list(self, project: str, keys: Iterable[Any]) -> List[Any]:
        items = self.current_items(project)
        keys = list(keys)
        missing = [key for key in keys if key not in items]
        if missing:
            raise NotFoundError(f"Not in the current list: {', '.join(map(str, missing))}")
        return keys

    def marked(self, project: Optional[str] = None) -> List[Any]:
        """Marked keys of the current list, in list order."""
        project = self.resolve_project(project)
        marks = self.marks.marked(project, self._list_key(self.tracker.get_position(project)))
        return [key for key in self.current_items(project) if key in marks]

    def mark(self, project: Optional[str], keys: Iterable[Hashable]) -> None:
        project = self.resolve_project(project)
        keys = self._check_in_list(project, keys)
        self.marks.mark(project, self._list_key(self.tracker.get_position(project)), keys)

    def unmark(self, project: Optional[str], keys: Iterable[Hashable]) -> None:
        project = self.resolve_project(project)
        self.marks.unmark(project, self._list_key(self.tracker.get_position(project)), keys)

    def toggle_mark(self, project: Optional[str], key: Hashable) -> bool:
        """Flip the mark on ``key``; returns whether it is now marked."""
        project = self.resolve_project(project)
        if key in self.marked(project):
            self.unmark(project, [key])
            return False
        self.mark(project, [key])
        return True

    def unmark_all(self, project: Optional[str] = None) -> None:
        project = self.resolve_project(project)
        self.marks.clear(project, self._list_key(self.tracker.get_position(project)))

    def selection(
        self,
        project: Optional[str] = None,
        cursor: Any = None,
        region: Optional[List[Any]] = None,
    ) -> Selection:
        """Selection over the current list, carrying its marks."""
        project = self.resolve_project(project)
        return Selection(
            items=self.current_items(project),
            cursor=cursor,
            marked=self.marked(project),
            region=region,
        )

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def hide(self, project: Optional[str], selection: Selection) -> List[DefinitionRecord]:
        """Hide the selected definitions.

        Raises:
            UserError: Outside the definition list, or with nothing selected.
        """
        project = self.resolve_project(project)
        position = self.tracker.get_position(project)
        if position.depth != DEFINITION_LIST:
            raise UserError("Hide is for definitions only")
        targets = resolve_targets(selection)
        if not targets:
            raise UserError("Nothing selected")
        self._hide(project, position, targets)
        return targets

    def _hide(self, project: str, position: Position, records: List[DefinitionRecord]) -> None:
        for record in records:
            self.store.set_hidden(project, position.file, position.symbol, record, True)
        self.marks.unmark(project, self._list_key(position), records)
        if position.definition in records:
            self.tracker.clear_from(project, DEFINITION_LIST)
        logger.debug("Hid %d definitions of %s", len(records), position.symbol)

    def show_all(
        self,
        project: Optional[str] = None,
        file: Optional[str] = None,
        symbol: Optional[str] = None,
    ) -> Set[DefinitionRecord]:
        """Unhide every definition of a symbol (the current one by default).

        The records shown again are marked in their list.

        Returns:
            The records that were hidden.
        """
        project = self.resolve_project(project)
        position = self.tracker.get_position(project)
        file = self.file_key(project, file) if file else position.file
        symbol = symbol or position.symbol
        if file is None or symbol is None:
            raise UserError("No symbol to show definitions of")
        shown = self.store.show_all(project, file, symbol)
        self.marks.mark(project, (DEFINITION_LIST, file, symbol), shown)
        return set(shown)

    def delete_items(self, project: Optional[str], selection: Selection) -> List[str]:
        """Delete the selected files or symbols, after confirmation.

        Returns:
            The deleted keys, empty if the user declined.

        Raises:
            UserError: In the definition list, or with nothing selected.
        """
        project = self.resolve_project(project)
        position = self.tracker.get_position(project)
        if position.depth == DEFINITION_LIST:
            raise UserError("Definitions can't be deleted, only hidden")
        targets = resolve_targets(selection)
        if not targets:
            raise UserError("Nothing selected")
        if not self._confirm_delete(position, targets):
            return []
        self._remove(project, position, targets)
        return targets

    def keep(self, project: Optional[str], selection: Selection) -> List[Any]:
        """Hide or delete everything in the current list except the selection.

        Returns:
            The hidden or deleted keys, empty if the user declined a delete.

        Raises:
            UserError: With nothing selected, or when nothing would be left
                to hide or delete.
        """
        project = self.resolve_project(project)
        position = self.tracker.get_position(project)
        targets = resolve_targets(selection)
        if not targets:
            raise UserError("Nothing selected")
        rest = complement(selection, targets)
        if position.depth == DEFINITION_LIST:
            if not rest:
                raise UserError("Nothing left to hide")
            self._hide(project, position, rest)
            return rest
        if not rest:
            raise UserError("Nothing left to delete")
        if not self._confirm_delete(position, rest):
            return []
        self._remove(project, position, rest)
        return rest

    def _confirm_delete(self, position: Position, keys: List[str]) -> bool:
        what = "files" if position.depth == FILE_LIST else "symbols"
        if self.confirm(f"Delete {len(keys)} {what} from the code map? This can't be undone."):
            return True
        logger.info("Delete of %d %s aborted", len(keys), what)
        return False

    def _remove(self, project: str, position: Position, keys: List[str]) -> None:
        for key in keys:
            if position.depth == FILE_LIST:
                self.store.remove_file(project, key)
            else:
                self.store.remove_symbol(project, position.file, key)
        self.marks.unmark(project, self._list_key(position), keys)
        if position.field_at(position.depth) in keys:
            self.tracker.clear_from(project, position.depth)

    def mark_missing(
        self,
        project: Optional[str] = None,
        exists: Callable[[str], bool] = os.path.exists,
    ) -> List[str]:
        """Mark files gone from disk, or symbols the query service lost.

        Args:
            exists: File existence check used in the file list.

        Returns:
            The keys found missing, in list order.

        Raises:
            UserError: In the definition list.
        """
        project = self.resolve_project(project)
        position = self.tracker.get_position(project)
        if position.depth == DEFINITION_LIST:
            raise UserError("Missing is only for files and symbols")
        items = self.current_items(project)
        if position.depth == FILE_LIST:
            missing = [f for f in items if not exists(os.path.join(project, f))]
        else:
            missing = [s for s in items if not self.query.query(s, exact_match=True)]
        self.marks.mark(project, self._list_key(position), missing)
        return missing

    # ------------------------------------------------------------------
    # Disk
    # ------------------------------------------------------------------

    def save(self, project: Optional[str] = None, path: Optional[str] = None) -> str:
        """Save a project's map and position.

        Without ``path`` the last saved/loaded path is used, then the
        configured ``map_file``.

        Returns:
            The absolute path written.
        """
        project = self.resolve_project(project)
        state = self.store.disk_state(project)
        path = path or state.path or self.config.resolve(project, self.config.map_file)
        path = os.path.abspath(path)
        save_map(path, project, self.store.get_map(project), self.tracker.get_position(project))
        state.dirty = False
        state.path = path
        return path

    def load(self, path: str) -> Optional[str]:
        """Load a saved map, replacing the project's map in memory.

        Asks before discarding unsaved changes.

        Returns:
            The project root loaded, or None if the user declined.

        Raises:
            CorruptedFileError: If the file is not a valid saved map.
        """
        saved = load_map(path)
        project = os.path.normpath(os.path.abspath(saved.project_root))
        position = _valid_position(saved.code_map, saved.position)
        state = self.store.disk_state(project)
        if state.dirty and not self.confirm(
            f"Discard unsaved changes to the code map of {project}?"
        ):
            logger.info("Load of %s aborted", path)
            return None
        self.store.set_map(project, saved.code_map)
        self.tracker.restore(project, position)
        self.marks.forget(project)
        state.dirty = False
        state.path = os.path.abspath(path)
        return project

    def dirty_projects(self) -> List[str]:
        """Projects with unsaved changes and a known file to save them to."""
        return [
            project
            for project, state in self.store.disk_states.items()
            if state.dirty and state.path
        ]

    def ask_to_save(self, prompt: Optional[ConfirmFn] = None) -> List[str]:
        """Offer to save every dirty project that has been saved or loaded.

        Returns:
            The projects saved.
        """
        prompt = prompt or self.confirm
        saved = []
        for project in self.dirty_projects():
            path = self.store.disk_state(project).path
            if prompt(f"Save the code map of {project} to {path}?"):
                self.save(project)
                saved.append(project)
        return saved

    def install_exit_hook(self, prompt: Optional[ConfirmFn] = None) -> None:
        """Run :meth:`ask_to_save` when the process exits."""
        if self._exit_hook_installed:
            return
        atexit.register(self.ask_to_save, prompt)
        self._exit_hook_installed = True
