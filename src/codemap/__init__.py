"""Code Map - a persistent, navigable map of the code you explore.

A code map is a per-project tree of files, the symbols you looked up in them,
and each symbol's definition locations. You build it while reading code,
prune it (hide definitions, delete files and symbols), and save it to disk to
pick up later.

Components:
    - Workspace: Navigation, annotation and save/load over all projects
    - CodeMapStore: The file -> symbol -> definitions tree
    - PositionTracker: Where navigation is in each project's map
    - CodeIndex / CodeIndexer: Definition lookup from a JSON index

Quick Start:
    >>> from codemap import CodeIndexer, CodeIndex, Workspace
    >>> CodeIndexer('/my/project').write('/my/project/.codemap-index.json')
    >>> workspace = Workspace(CodeIndex.load('/my/project/.codemap-index.json'))
    >>> workspace.see_symbol('/my/project', 'src/main.c', 'run')
    >>> workspace.save('/my/project')
"""

from .config import CodeMapConfig, load_config
from .exceptions import (
    CodeMapError,
    ConflictError,
    CorruptedFileError,
    NotFoundError,
    UserError,
)
from .indexer import CodeIndexer
from .models import (
    DEFINITION_LIST,
    FILE_LIST,
    SYMBOL_LIST,
    Definition,
    DefinitionRecord,
    DiskState,
    Position,
)
from .persistence import SavedMap, load_map, save_map
from .position import PositionTracker, advance_position, clear_position_from
from .query import CodeIndex, DefinitionQueryService
from .selection import Selection, resolve_targets
from .store import CodeMapStore
from .workspace import Host, Workspace

__version__ = "1.0.0"
__license__ = "MIT"

__all__ = [
    "__version__",
    "__license__",
    # Main classes
    "Workspace",
    "CodeMapStore",
    "PositionTracker",
    "CodeIndex",
    "CodeIndexer",
    # Models
    "Definition",
    "DefinitionRecord",
    "DiskState",
    "Position",
    "Selection",
    "SavedMap",
    "FILE_LIST",
    "SYMBOL_LIST",
    "DEFINITION_LIST",
    # Interfaces
    "DefinitionQueryService",
    "Host",
    # Functions
    "advance_position",
    "clear_position_from",
    "resolve_targets",
    "load_map",
    "save_map",
    "load_config",
    "CodeMapConfig",
    # Errors
    "CodeMapError",
    "NotFoundError",
    "UserError",
    "ConflictError",
    "CorruptedFileError",
]
