#!/usr/bin/env python3
"""Command line interface for the code map.

Each invocation loads the project's saved map (when there is one), runs one
operation, and saves the map again if it changed:
    - codemap index: Build the definition index of a project
    - codemap see-symbol: Add a symbol to the map and browse its definitions
    - codemap see-file: Browse the symbols recorded for a file
    - codemap ls: List the current level of the map
    - codemap forward / back: Move down or up one level
    - codemap hide / show-all: Hide definitions, or show them all again
    - codemap delete / keep: Remove files or symbols, or everything else
    - codemap missing: List files gone from disk or symbols without definitions
    - codemap replace-file: Rename a file in the map
    - codemap update: Re-query every symbol in the map
    - codemap status: Show the position and save state

Example:
    $ codemap index
    $ codemap see-symbol src/main.c run
    $ codemap forward src/main.c:12
    $ codemap hide src/legacy.c:40
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from . import __version__
from .colors import get_colors
from .config import load_config
from .exceptions import CodeMapError, UserError
from .indexer import CodeIndexer
from .models import DEFINITION_LIST, DEPTH_NAMES, FILE_LIST, DefinitionRecord
from .query import CodeIndex
from .workspace import Workspace


class CliHost:
    """Host for one command line invocation: jumps are printed as path:line."""

    def __init__(self, project: str):
        self.project = project
        self.opened: Optional[str] = None

    def open_location(self, path: str, line: int, focus: str) -> None:
        self.opened = f"{path}:{line}"
        print(self.opened)

    def current_buffer_file(self) -> Optional[str]:
        return None

    def project_root_of(self, path: str) -> str:
        return self.project


def make_prompt(assume_yes: bool):
    """Return a confirm callback reading y/N from stdin."""

    def prompt(message: str) -> bool:
        if assume_yes:
            return True
        try:
            answer = input(f"{message} [y/N] ")
        except EOFError:
            return False
        return answer.strip().lower() in ("y", "yes")

    return prompt


def format_listing(
    workspace: Workspace,
    project: str,
    show_hidden: bool = False,
    no_color: bool = False,
) -> str:
    """Render the current level of the map as text."""
    c = get_colors(no_color=no_color)
    position = workspace.tracker.get_position(project)
    marked = set(workspace.marked(project))
    current = position.field_at(position.depth)

    header = f"{c.path(project)} [{DEPTH_NAMES[position.depth]}]"
    if position.depth >= 1 and position.file:
        header += f" {c.path(position.file)}"
    if position.depth == DEFINITION_LIST and position.symbol:
        header += f" {c.symbol(position.symbol)}"
    lines = [header]

    if position.depth == DEFINITION_LIST and position.file and position.symbol:
        entries = [
            (d.record, d.hidden)
            for d in workspace.store.get_definition_list(project, position.file, position.symbol)
            if show_hidden or not d.hidden
        ]
    else:
        entries = [(key, False) for key in workspace.current_items(project)]

    for key, hidden in entries:
        prefix = ">" if key == current else " "
        prefix += "*" if key in marked else " "
        if isinstance(key, DefinitionRecord):
            text = f"{c.path(key.path)}:{c.line(str(key.line))}"
            if key.kind:
                text += f"  [{c.kind(key.kind)}]"
            if key.signature:
                text += f"  {key.signature}"
        else:
            text = c.path(key) if position.depth == FILE_LIST else c.symbol(key)
        if hidden:
            text = c.dim(f"{text}  (hidden)")
        elif key in marked:
            text = c.marked(text)
        lines.append(f"{prefix} {text}")

    if not entries:
        lines.append(c.dim("  (empty)"))
    return "\n".join(lines)


def add_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the global options and subcommands to a parser."""
    parser.add_argument(
        "-p", "--project", default=os.getcwd(), help="Project root (default: current directory)"
    )
    parser.add_argument("-m", "--map", help="Saved map file (default: from config)")
    parser.add_argument("-i", "--index", help="Definition index file (default: from config)")
    parser.add_argument("-y", "--yes", action="store_true", help="Answer yes to every prompt")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")

    index_parser = subparsers.add_parser("index", help="Build the definition index")
    index_parser.add_argument("--ignore", nargs="*", help="Additional patterns to ignore")

    see_symbol = subparsers.add_parser("see-symbol", help="Add a symbol and browse its definitions")
    see_symbol.add_argument("file", help="File the symbol is filed under")
    see_symbol.add_argument("symbol", help="Symbol name")

    see_file = subparsers.add_parser("see-file", help="Browse the symbols of a file")
    see_file.add_argument("file", help="File in the map")

    ls_parser = subparsers.add_parser("ls", help="List the current level")
    ls_parser.add_argument("-a", "--all", action="store_true", help="Include hidden definitions")

    forward = subparsers.add_parser("forward", help="Enter an item, or jump to a definition")
    forward.add_argument("key", help="File, symbol, or path:line")

    subparsers.add_parser("back", help="Go up one level")

    for name, help_text in (
        ("hide", "Hide definitions (default: the current one)"),
        ("delete", "Delete files or symbols (default: the current one)"),
        ("keep", "Hide or delete everything except the given items"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("keys", nargs="*", help="Items to act on")

    subparsers.add_parser("show-all", help="Show every hidden definition of the current symbol")
    subparsers.add_parser("missing", help="List missing files or symbols")

    replace = subparsers.add_parser("replace-file", help="Rename a file in the map")
    replace.add_argument("old", help="File currently in the map")
    replace.add_argument("new", help="New file path")

    subparsers.add_parser("update", help="Re-query every symbol in the map")
    subparsers.add_parser("status", help="Show the position and save state")


def run_index(args: argparse.Namespace, project: str, index_path: str) -> None:
    c = get_colors(no_color=args.no_color)
    config = load_config(project)
    indexer = CodeIndexer(project, list(config.ignore) + list(args.ignore or []))
    index = indexer.write(index_path)
    stats = index["stats"]
    print(f"{c.success('✓')} Index written: {c.path(index_path)}", file=sys.stderr)
    print(f"  Files processed: {stats['files_processed']}", file=sys.stderr)
    print(f"  Symbols found: {stats['symbols_found']}", file=sys.stderr)


def run_command(args: argparse.Namespace, workspace: Workspace, project: str) -> None:
    """Run one map command against a loaded workspace."""
    c = get_colors(no_color=args.no_color)
    position = workspace.tracker.get_position(project)
    cursor = position.field_at(position.depth)
    show_listing = True

    if args.command == "see-symbol":
        workspace.see_symbol(project, args.file, args.symbol)
    elif args.command == "see-file":
        workspace.see_file(project, args.file)
    elif args.command == "forward":
        key = workspace.parse_keys(project, [args.key])[0]
        if position.depth == DEFINITION_LIST:
            show_listing = False
        workspace.forward(project, key)
    elif args.command == "back":
        workspace.backward(project)
    elif args.command in ("hide", "delete", "keep"):
        region = workspace.parse_keys(project, args.keys) or None
        selection = workspace.selection(project, cursor=cursor, region=region)
        operation = {
            "hide": workspace.hide,
            "delete": workspace.delete_items,
            "keep": workspace.keep,
        }[args.command]
        done = operation(project, selection)
        if not done:
            print(c.warning("Aborted"), file=sys.stderr)
    elif args.command == "show-all":
        shown = workspace.show_all(project)
        print(f"{len(shown)} definitions shown again", file=sys.stderr)
    elif args.command == "missing":
        missing = workspace.mark_missing(project)
        for key in missing:
            print(key)
        if not missing:
            print("Nothing missing", file=sys.stderr)
        show_listing = False
    elif args.command == "replace-file":
        workspace.replace_file(project, args.old, args.new)
    elif args.command == "update":
        count = workspace.update(project)
        print(f"{count} symbols updated", file=sys.stderr)
    elif args.command == "status":
        state = workspace.store.disk_state(project)
        position = workspace.tracker.get_position(project)
        print(f"project:    {project}")
        print(f"depth:      {position.depth} ({DEPTH_NAMES[position.depth]})")
        print(f"file:       {position.file or '-'}")
        print(f"symbol:     {position.symbol or '-'}")
        print(f"definition: {position.definition.location if position.definition else '-'}")
        print(f"saved to:   {state.path or '-'}")
        show_listing = False

    if show_listing:
        print(format_listing(workspace, project, getattr(args, "all", False), args.no_color))


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the ``codemap`` command.

    Usage:
        codemap [-p PROJECT] [-m MAP] [-i INDEX] [-y] <command> [args]
    """
    parser = argparse.ArgumentParser(
        prog="codemap",
        description="Build and browse a persistent map of the code you explore",
        epilog="Run 'codemap <command> --help' for more information on a command.",
    )
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    add_arguments(parser)
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING)
    c = get_colors(no_color=args.no_color)

    project = os.path.normpath(os.path.abspath(args.project))
    config = load_config(project)
    map_path = os.path.abspath(args.map or config.resolve(project, config.map_file))
    index_path = os.path.abspath(args.index or config.resolve(project, config.index_file))

    try:
        if args.command == "index":
            run_index(args, project, index_path)
            return

        try:
            query = CodeIndex.load(index_path)
        except FileNotFoundError:
            print(
                f"{c.error('Error')}: no index at {index_path}; run 'codemap index' first",
                file=sys.stderr,
            )
            sys.exit(1)

        workspace = Workspace(
            query, host=CliHost(project), confirm=make_prompt(args.yes), config=config
        )
        if os.path.exists(map_path):
            loaded = workspace.load(map_path)
            if loaded != project:
                # Saving would overwrite that project's map with this one's
                raise UserError(
                    f"{map_path} is the code map of {loaded}; "
                    f"pass -p {loaded} or use another -m"
                )

        before = workspace.tracker.get_position(project)
        run_command(args, workspace, project)

        state = workspace.store.disk_state(project)
        if state.dirty or workspace.tracker.get_position(project) != before:
            workspace.save(project, map_path)
    except CodeMapError as e:
        print(f"{c.error('Error')}: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
