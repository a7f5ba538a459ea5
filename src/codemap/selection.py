"""Bulk selection: which items an operation acts on.

Hide, delete, keep and similar operations do not care how items were picked.
They receive a :class:`Selection` and call :func:`resolve_targets`, which
applies a fixed fallback: an active region first, then marked items, then the
single item under the cursor.

Example:
    >>> selection = Selection(items=['a.c', 'b.c', 'c.c'], cursor='b.c', marked=['c.c'])
    >>> resolve_targets(selection)
    ['c.c']
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, List, Optional, Set, Tuple

from .exceptions import NotFoundError

# (depth, file, symbol) identifies one list in a project's map
ListKey = Tuple[int, Optional[str], Optional[str]]


@dataclass
class Selection:
    """What the user has picked in the list being browsed.

    Attributes:
        items: Every key in the list, in display order.
        cursor: Key under the cursor, if any.
        marked: Marked keys.
        region: Keys inside an active region, or None when there is no region.
    """

    items: List[Any]
    cursor: Optional[Any] = None
    marked: List[Any] = field(default_factory=list)
    region: Optional[List[Any]] = None


def resolve_targets(selection: Selection) -> List[Any]:
    """Return the keys an operation should act on, in list order.

    Raises:
        NotFoundError: If a region or cursor key is not in the list.
    """
    if selection.region:
        wanted = list(selection.region)
    elif selection.marked:
        wanted = list(selection.marked)
    elif selection.cursor is not None:
        wanted = [selection.cursor]
    else:
        return []

    missing = [key for key in wanted if key not in selection.items]
    if missing:
        raise NotFoundError(f"Not in the current list: {', '.join(map(str, missing))}")
    wanted_set = set(wanted)
    return [key for key in selection.items if key in wanted_set]


def complement(selection: Selection, targets: List[Any]) -> List[Any]:
    """Return the items of the selection's list not in ``targets``."""
    excluded = set(targets)
    return [key for key in selection.items if key not in excluded]


class MarkRegistry:
    """Transient marks, one set per list of each project.

    Marks are a display aid: they are never saved and never make a map dirty.
    """

    def __init__(self):
        self._marks: Dict[str, Dict[ListKey, Set[Hashable]]] = {}

    def marked(self, project: str, list_key: ListKey) -> Set[Hashable]:
        return set(self._marks.get(project, {}).get(list_key, set()))

    def mark(self, project: str, list_key: ListKey, keys) -> None:
        self._marks.setdefault(project, {}).setdefault(list_key, set()).update(keys)

    def unmark(self, project: str, list_key: ListKey, keys) -> None:
        marks = self._marks.get(project, {}).get(list_key)
        if marks:
            marks.difference_update(keys)

    def clear(self, project: str, list_key: ListKey) -> None:
        self._marks.get(project, {}).pop(list_key, None)

    def forget(self, project: str) -> None:
        self._marks.pop(project, None)

    def rename_file(self, project: str, old_file: str, new_file: str) -> None:
        """Move marks keyed by ``old_file`` to ``new_file``."""
        lists = self._marks.get(project)
        if not lists:
            return
        for (depth, file, symbol) in list(lists):
            if file == old_file:
                lists[(depth, new_file, symbol)] = lists.pop((depth, file, symbol))
        file_marks = lists.get((0, None, None))
        if file_marks and old_file in file_marks:
            file_marks.discard(old_file)
            file_marks.add(new_file)
