#!/usr/bin/env python3
"""Code Indexer - builds the symbol index the code map queries definitions from.

The index is a JSON file listing every definition found in a project, grouped
by file, plus a lowercased name index for direct lookup. Python files are
analyzed with the ``ast`` module; other languages use per-language regular
expressions.

Example:
    Command line usage:
        $ codemap index /path/to/project

    Python API usage:
        >>> indexer = CodeIndexer('/path/to/project')
        >>> index = indexer.scan()
        >>> print(index['stats'])
        {'files_processed': 142, 'symbols_found': 1847, 'errors': 0}
"""

import ast
import fnmatch
import hashlib
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .persistence import write_json_atomic

logger = logging.getLogger(__name__)

INDEX_VERSION = "1.0"

LANGUAGE_EXTENSIONS = {
    "python": [".py"],
    "javascript": [".js", ".jsx", ".mjs"],
    "typescript": [".ts", ".tsx"],
    "java": [".java"],
    "go": [".go"],
    "rust": [".rs"],
    "c": [".c", ".h"],
    "cpp": [".cpp", ".hpp", ".cc", ".hh", ".cxx"],
}

DEFAULT_IGNORE_PATTERNS = [
    "node_modules",
    "__pycache__",
    ".git",
    ".svn",
    ".hg",
    "venv",
    ".venv",
    "dist",
    "build",
    "*.min.js",
    ".tox",
    "*.egg-info",
    ".pytest_cache",
    ".codemap",
    "vendor",
    "target",
]


@dataclass
class IndexedSymbol:
    """A definition found while indexing.

    Attributes:
        name: The symbol's name.
        type: The symbol type ('function', 'class', 'method', 'struct', ...).
        file_path: Path relative to the indexed root.
        line_start: Starting line number (1-indexed).
        line_end: Ending line number (1-indexed, inclusive).
        signature: Signature text, if found.
        parent: For methods, the containing class name.
    """

    name: str
    type: str
    file_path: str
    line_start: int
    line_end: int
    signature: Optional[str] = None
    parent: Optional[str] = None


class PythonAnalyzer(ast.NodeVisitor):
    """Extracts class, function and method definitions from Python source."""

    def __init__(self, file_path: str, source: str):
        self.file_path = file_path
        self.source = source
        self.symbols: List[IndexedSymbol] = []
        self.current_class: Optional[str] = None

    @staticmethod
    def _unparse(node) -> Optional[str]:
        try:
            return ast.unparse(node)
        except (TypeError, AttributeError, RecursionError, ValueError):
            return None

    def _signature(self, node) -> str:
        args = []
        for arg in node.args.args:
            text = arg.arg
            annotation = self._unparse(arg.annotation) if arg.annotation else None
            if annotation:
                text += f": {annotation}"
            args.append(text)
        returns = self._unparse(node.returns) if node.returns else None
        prefix = "async " if isinstance(node, ast.AsyncFunctionDef) else ""
        suffix = f" -> {returns}" if returns else ""
        return f"{prefix}def {node.name}({', '.join(args)}){suffix}"

    def visit_ClassDef(self, node):
        bases = [b for b in (self._unparse(base) for base in node.bases) if b]
        signature = f"class {node.name}"
        if bases:
            signature += f"({', '.join(bases)})"
        self.symbols.append(
            IndexedSymbol(
                name=node.name,
                type="class",
                file_path=self.file_path,
                line_start=node.lineno,
                line_end=node.end_lineno or node.lineno,
                signature=signature,
                parent=self.current_class,
            )
        )
        outer = self.current_class
        self.current_class = node.name
        self.generic_visit(node)
        self.current_class = outer

    def visit_FunctionDef(self, node):
        self._visit_function(node)

    def visit_AsyncFunctionDef(self, node):
        self._visit_function(node)

    def _visit_function(self, node):
        self.symbols.append(
            IndexedSymbol(
                name=node.name,
                type="method" if self.current_class else "function",
                file_path=self.file_path,
                line_start=node.lineno,
                line_end=node.end_lineno or node.lineno,
                signature=self._signature(node),
                parent=self.current_class,
            )
        )
        # Nested functions are not methods of the enclosing class
        outer = self.current_class
        self.current_class = None
        self.generic_visit(node)
        self.current_class = outer

    def analyze(self) -> List[IndexedSymbol]:
        """Parse the source and return its definitions.

        A file with a syntax error yields no definitions.
        """
        try:
            self.visit(ast.parse(self.source))
        except SyntaxError as e:
            logger.warning("Syntax error in %s: %s", self.file_path, e)
        return self.symbols


class GenericAnalyzer:
    """Regex-based analyzer for non-Python languages.

    Less accurate than AST analysis; end lines are found by brace counting.
    """

    PATTERNS = {
        "javascript": {
            "function": r"^\s*(?:export\s+)?(?:async\s+)?function\s+(\w+)\s*\(",
            "arrow": r"^\s*(?:export\s+)?(?:const|let|var)\s+(\w+)\s*=\s*(?:async\s+)?\([^)]*\)\s*=>",
            "class": r"^\s*(?:export\s+)?class\s+(\w+)",
        },
        "typescript": {
            "function": r"^\s*(?:export\s+)?(?:async\s+)?function\s+(\w+)\s*(?:<[^>]*>)?\s*\(",
            "interface": r"^\s*(?:export\s+)?interface\s+(\w+)",
            "type": r"^\s*(?:export\s+)?type\s+(\w+)\s*=",
            "class": r"^\s*(?:export\s+)?(?:abstract\s+)?class\s+(\w+)",
        },
        "java": {
            "class": r"^\s*(?:public\s+|private\s+|protected\s+)?(?:abstract\s+|final\s+)?class\s+(\w+)",
            "interface": r"^\s*(?:public\s+)?interface\s+(\w+)",
        },
        "go": {
            "function": r"^func\s+(\w+)\s*\(",
            "method": r"^func\s+\([^)]+\)\s+(\w+)\s*\(",
            "struct": r"^type\s+(\w+)\s+struct",
            "interface": r"^type\s+(\w+)\s+interface",
        },
        "rust": {
            "function": r"^\s*(?:pub(?:\([^)]*\))?\s+)?(?:async\s+)?fn\s+(\w+)",
            "struct": r"^\s*(?:pub\s+)?struct\s+(\w+)",
            "trait": r"^\s*(?:pub\s+)?trait\s+(\w+)",
            "enum": r"^\s*(?:pub\s+)?enum\s+(\w+)",
        },
        "c": {
            "function": r"^[A-Za-z_][\w \t\*]*?[\s\*](\w+)\s*\([^;{]*\)\s*\{?\s*$",
            "struct": r"^\s*(?:typedef\s+)?struct\s+(\w+)\s*\{",
            "enum": r"^\s*(?:typedef\s+)?enum\s+(\w+)\s*\{",
            "macro": r"^\s*#\s*define\s+(\w+)",
        },
        "cpp": {
            "function": r"^[A-Za-z_][\w \t\*&:<>,]*?[\s\*&](\w+)\s*\([^;{]*\)\s*(?:const\s*)?\{?\s*$",
            "class": r"^\s*(?:template\s*<[^>]*>\s*)?class\s+(\w+)",
            "struct": r"^\s*struct\s+(\w+)\s*\{",
            "macro": r"^\s*#\s*define\s+(\w+)",
        },
    }

    # Keywords the C-family function pattern would otherwise pick up
    _NOT_FUNCTIONS = {"if", "for", "while", "switch", "return", "sizeof", "else"}

    MAX_SYMBOL_LINES = 500

    def __init__(self, file_path: str, source: str, language: str):
        self.file_path = file_path
        self.source = source
        self.language = language
        self.lines = source.split("\n")

    def _line_end(self, line_num: int) -> int:
        brace_count = 0
        started = False
        for i, line in enumerate(self.lines[line_num - 1 :], start=line_num):
            brace_count += line.count("{") - line.count("}")
            if "{" in line:
                started = True
            if started and brace_count <= 0:
                return i
            if i > line_num + self.MAX_SYMBOL_LINES:
                return i
        return line_num

    def analyze(self) -> List[IndexedSymbol]:
        symbols = []
        for symbol_type, pattern in self.PATTERNS.get(self.language, {}).items():
            for match in re.finditer(pattern, self.source, re.MULTILINE):
                name = match.group(1)
                if symbol_type == "function" and name in self._NOT_FUNCTIONS:
                    continue
                line_num = self.source[: match.start(1)].count("\n") + 1
                symbols.append(
                    IndexedSymbol(
                        name=name,
                        type=symbol_type,
                        file_path=self.file_path,
                        line_start=line_num,
                        line_end=self._line_end(line_num),
                        signature=match.group(0).strip()[:100],
                    )
                )
        symbols.sort(key=lambda s: s.line_start)
        return symbols


class CodeIndexer:
    """Scans a directory tree and produces a definition index.

    Attributes:
        root_path: Absolute path to the indexed root.
        ignore_patterns: Patterns skipped during scanning.
        stats: Processing statistics.

    Example:
        >>> indexer = CodeIndexer('/my/project')
        >>> indexer.write('/my/project/.codemap-index.json')
    """

    def __init__(self, root_path: str, ignore_patterns: List[str] = None):
        self.root_path = Path(root_path).resolve()
        self.ignore_patterns = list(DEFAULT_IGNORE_PATTERNS)
        if ignore_patterns:
            self.ignore_patterns.extend(ignore_patterns)
        self.symbols: List[IndexedSymbol] = []
        self.file_hashes: Dict[str, str] = {}
        self.stats = {"files_processed": 0, "symbols_found": 0, "errors": 0}

    def should_ignore(self, path: Path) -> bool:
        name = path.name
        for pattern in self.ignore_patterns:
            if fnmatch.fnmatch(name, pattern):
                return True
        return False

    @staticmethod
    def get_language(file_path: Path) -> Optional[str]:
        ext = file_path.suffix.lower()
        for lang, extensions in LANGUAGE_EXTENSIONS.items():
            if ext in extensions:
                return lang
        return None

    def analyze_file(self, file_path: Path) -> List[IndexedSymbol]:
        """Extract the definitions of one file.

        Unreadable files are counted as errors and skipped.
        """
        language = self.get_language(file_path)
        if not language:
            return []
        try:
            content = file_path.read_text(encoding="utf-8", errors="ignore")
        except OSError as e:
            self.stats["errors"] += 1
            logger.warning("Error reading %s: %s", file_path, e)
            return []

        rel_path = file_path.relative_to(self.root_path).as_posix()
        self.file_hashes[rel_path] = hashlib.md5(content.encode()).hexdigest()[:12]

        if language == "python":
            analyzer = PythonAnalyzer(rel_path, content)
        else:
            analyzer = GenericAnalyzer(rel_path, content, language)
        return analyzer.analyze()

    def scan(self) -> Dict[str, Any]:
        """Scan the whole tree and return the index.

        Returns:
            Dict with version, root, timestamp, stats, files map, and name index.
        """
        logger.info("Indexing %s", self.root_path)
        self.symbols = []
        self.file_hashes = {}
        self.stats = {"files_processed": 0, "symbols_found": 0, "errors": 0}

        for root, dirs, files in os.walk(self.root_path):
            dirs[:] = sorted(d for d in dirs if not self.should_ignore(Path(root) / d))
            for file in sorted(files):
                file_path = Path(root) / file
                if self.should_ignore(file_path) or not self.get_language(file_path):
                    continue
                self.symbols.extend(self.analyze_file(file_path))
                self.stats["files_processed"] += 1

        self.stats["symbols_found"] = len(self.symbols)
        return self.generate_index()

    def generate_index(self) -> Dict[str, Any]:
        files_map: Dict[str, Dict[str, Any]] = {
            path: {"hash": file_hash, "symbols": []} for path, file_hash in self.file_hashes.items()
        }
        name_index: Dict[str, List[Dict[str, Any]]] = {}

        for symbol in self.symbols:
            files_map.setdefault(symbol.file_path, {"hash": "", "symbols": []})
            files_map[symbol.file_path]["symbols"].append(
                {
                    "name": symbol.name,
                    "type": symbol.type,
                    "lines": [symbol.line_start, symbol.line_end],
                    "signature": symbol.signature,
                    "parent": symbol.parent,
                }
            )
            name_index.setdefault(symbol.name.lower(), []).append(
                {
                    "file": symbol.file_path,
                    "type": symbol.type,
                    "lines": [symbol.line_start, symbol.line_end],
                    "parent": symbol.parent,
                }
            )

        return {
            "version": INDEX_VERSION,
            "root": str(self.root_path),
            "generated_at": datetime.now().isoformat(),
            "stats": self.stats,
            "files": files_map,
            "index": name_index,
        }

    def write(self, output_path: str) -> Dict[str, Any]:
        """Scan and write the index to ``output_path`` atomically.

        Returns:
            The index that was written.
        """
        index = self.scan()
        write_json_atomic(output_path, index)
        return index

