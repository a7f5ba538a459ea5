"""Definition query services.

The code map never finds definitions itself. It asks a query service, which
maps a symbol name to zero or more :class:`DefinitionRecord` values. Anything
with a matching ``query`` method will do; :class:`CodeIndex` answers from an
index file written by :class:`codemap.indexer.CodeIndexer`.

Example:
    >>> index = CodeIndex.load('/my/project/.codemap-index.json')
    >>> for record in index.query('process_payment'):
    ...     print(record.location)
    src/billing.py:45
"""

import json
import logging
from typing import Any, Dict, List, Protocol

from .exceptions import CorruptedFileError
from .models import DefinitionRecord

logger = logging.getLogger(__name__)


class DefinitionQueryService(Protocol):
    """Anything that can look up definitions by symbol name."""

    def query(self, symbol_name: str, exact_match: bool = True) -> List[DefinitionRecord]:
        ...


class CodeIndex:
    """Query service over a JSON definition index.

    Attributes:
        index_path: Path to the index file, if loaded from disk.
        data: The parsed index.
    """

    def __init__(self, data: Dict[str, Any], index_path: str = None):
        if not isinstance(data, dict) or not isinstance(data.get("files"), dict):
            raise CorruptedFileError("Index has no 'files' mapping", path=index_path or "")
        self.data = data
        self.index_path = index_path

    @classmethod
    def load(cls, index_path: str) -> "CodeIndex":
        """Load an index file.

        Raises:
            FileNotFoundError: If the index file doesn't exist.
            CorruptedFileError: If it is not a valid index.
        """
        with open(index_path, encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise CorruptedFileError(f"Invalid index {index_path}: {e}", path=index_path)
        logger.debug("Loaded index %s", index_path)
        return cls(data, index_path)

    def reload(self) -> None:
        """Reread the index file, e.g. before refreshing a whole map."""
        if self.index_path:
            self.data = CodeIndex.load(self.index_path).data

    def query(self, symbol_name: str, exact_match: bool = True) -> List[DefinitionRecord]:
        """Find the definitions of ``symbol_name``.

        Args:
            symbol_name: Name to look up.
            exact_match: Case-sensitive equality when True, case-insensitive
                substring match otherwise.

        Returns:
            Records in index order, without duplicates.
        """
        if exact_match:
            candidates = self._exact_candidates(symbol_name)
        else:
            candidates = self._substring_candidates(symbol_name)

        results: List[DefinitionRecord] = []
        for file_path, sym in candidates:
            record = DefinitionRecord(
                name=sym["name"],
                path=file_path,
                line=sym["lines"][0],
                kind=sym.get("type"),
                signature=sym.get("signature"),
                parent=sym.get("parent"),
            )
            if record not in results:
                results.append(record)
        return results

    def _exact_candidates(self, symbol_name: str):
        files = self.data["files"]
        entries = self.data.get("index", {}).get(symbol_name.lower())
        if entries is None:
            # No name index; fall back to scanning every file
            for file_path, file_info in files.items():
                for sym in file_info.get("symbols", []):
                    if sym["name"] == symbol_name:
                        yield file_path, sym
            return
        for entry in entries:
            for sym in files.get(entry["file"], {}).get("symbols", []):
                if sym["name"] == symbol_name and sym["lines"] == entry["lines"]:
                    yield entry["file"], sym

    def _substring_candidates(self, symbol_name: str):
        needle = symbol_name.lower()
        for file_path, file_info in self.data["files"].items():
            for sym in file_info.get("symbols", []):
                if needle in sym["name"].lower():
                    yield file_path, sym
