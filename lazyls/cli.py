"""Command-line front door for lazyls.

Parses options, loads the user config once, then prints one row per entry
with the requested detail columns.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import TextIO

from . import detail
from .config import ConfigError, DetailConfig, SizeUnit, TimeField, load_detail_config
from .git_status import GitStatusResolver
from .identity import IdentityCache
from .markup import markup, render, strip_markup
from .node import EntryType, Node

FIELDS = (
    "dev",
    "ino",
    "nlink",
    "perm",
    "oct",
    "user",
    "uid",
    "group",
    "gid",
    "size",
    "blocks",
    "btime",
    "ctime",
    "mtime",
    "atime",
    "git",
)
DEFAULT_FIELDS = ("perm", "user", "group", "size", "mtime", "git")
_RIGHT_ALIGNED = frozenset({"dev", "ino", "nlink", "uid", "gid", "size", "blocks"})


def _field_list(value: str) -> tuple[str, ...]:
    """argparse type for a comma-separated list of detail fields."""
    fields = tuple(part.strip() for part in value.split(",") if part.strip())
    unknown = [name for name in fields if name not in FIELDS]
    if unknown:
        raise argparse.ArgumentTypeError(f"unknown field(s): {', '.join(unknown)}")
    return fields


class Listing:
    """Shared caches and config for one invocation."""

    def __init__(self, config: DetailConfig, fields: tuple[str, ...]) -> None:
        self.config = config
        self.fields = fields
        self.identities = IdentityCache()
        self.git_resolver = GitStatusResolver(timeout_seconds=config.git_timeout_seconds)
        self.timezone = detail.local_timezone()

    def cell(self, name: str, node: Node) -> str | None:
        config = self.config
        if name in ("user", "uid", "group", "gid"):
            return getattr(detail, name)(node, self.identities, config)
        if name in ("atime", "btime", "ctime", "mtime"):
            return detail.time(node, TimeField(name), config, self.timezone)
        if name == "git":
            return detail.git(node, self.git_resolver, config)
        if name == "oct":
            return detail.octal(node, config)
        return getattr(detail, name)(node, config)

    def row(self, node: Node) -> list[str]:
        cells = [self.cell(name, node) or "" for name in self.fields]
        label = node.render_name(self.config)
        target = node.target()
        if target is not None:
            label = f"{label} {target.render(self.config)}"
        return [*cells, label]

    def format_rows(self, rows: list[list[str]]) -> list[str]:
        """Pad every detail column to its widest visible value."""
        widths = [0] * len(self.fields)
        for row in rows:
            for index, cell in enumerate(row[:-1]):
                widths[index] = max(widths[index], len(strip_markup(cell)))

        lines: list[str] = []
        for row in rows:
            parts: list[str] = []
            for index, cell in enumerate(row[:-1]):
                padding = " " * (widths[index] - len(strip_markup(cell)))
                parts.append(padding + cell if self.fields[index] in _RIGHT_ALIGNED else cell + padding)
            parts.append(row[-1])
            lines.append(" ".join(parts))
        return lines


def collect_nodes(path: Path, show_all: bool) -> list[Node]:
    """Return ``path`` itself, or its children sorted by name for a directory."""
    node = Node(path)
    if node.typ != EntryType.DIR:
        return [node]
    with os.scandir(path) as entries:
        children = [Node.from_dir_entry(entry) for entry in entries if show_all or not entry.name.startswith(".")]
    return sorted(children, key=lambda child: child.name.lower())


def run_listing(paths: list[Path], listing: Listing, show_all: bool, color: bool, out: TextIO) -> bool:
    """Print every path; return ``False`` if any path could not be listed."""
    ok = True
    show_title = len(paths) > 1
    for index, path in enumerate(paths):
        if not os.path.lexists(path):
            sys.stderr.write(f"lazyls: {path}: no such file or directory\n")
            ok = False
            continue
        try:
            nodes = collect_nodes(path, show_all)
        except OSError as exc:
            sys.stderr.write(f"lazyls: {path}: {exc.strerror or exc}\n")
            ok = False
            continue

        if show_title:
            if index:
                out.write("\n")
            out.write(render(markup("bold", f"{path}:"), color) + "\n")
        for line in listing.format_rows([listing.row(node) for node in nodes]):
            out.write(render(line, color).rstrip() + "\n")
    return ok


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and print the listing for each path (default ``.``)."""
    parser = argparse.ArgumentParser(description="List directory entries with metadata and git status.")
    parser.add_argument("paths", nargs="*", type=Path, help="Files or directories to list. Defaults to '.'.")
    parser.add_argument(
        "-d",
        "--details",
        type=_field_list,
        default=DEFAULT_FIELDS,
        help=f"Comma-separated detail fields ({', '.join(FIELDS)}).",
    )
    parser.add_argument(
        "--unit",
        choices=[unit.value for unit in SizeUnit],
        default=None,
        help="Size unit (overrides config).",
    )
    parser.add_argument("-a", "--all", action="store_true", help="Include entries whose names start with '.'.")
    parser.add_argument("--no-color", action="store_true", help="Disable color output even on TTY.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug diagnostics to stderr.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_detail_config()
    except ConfigError as exc:
        raise SystemExit(f"lazyls: invalid config: {exc}") from exc
    if args.unit is not None:
        config = replace(config, unit=SizeUnit(args.unit))

    color = not args.no_color and sys.stdout.isatty()
    listing = Listing(config, args.details)
    if not run_listing(args.paths or [Path(".")], listing, args.all, color, sys.stdout):
        raise SystemExit(1)


if __name__ == "__main__":
    main()
