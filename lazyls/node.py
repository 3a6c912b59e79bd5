"""Filesystem entries and symlink target resolution.

``Node`` is the one concrete entry type. Detail renderers, the symlink
resolver and the git status resolver only depend on the small protocols
below, so tests can hand them lightweight fakes.
"""

from __future__ import annotations

import errno
import os
import stat
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol, Union

from .config import DetailConfig
from .markup import markup

MAX_SYMLINK_HOPS = 40


class EntryType(str, Enum):
    FILE = "file"
    DIR = "dir"
    SYMLINK = "symlink"
    OTHER = "other"

    @classmethod
    def from_mode(cls, mode: int) -> EntryType:
        if stat.S_ISLNK(mode):
            return cls.SYMLINK
        if stat.S_ISDIR(mode):
            return cls.DIR
        if stat.S_ISREG(mode):
            return cls.FILE
        return cls.OTHER


class StatusProvider(Protocol):
    path: Path
    typ: EntryType


class MetadataProvider(StatusProvider, Protocol):
    def stat(self) -> os.stat_result | None: ...


class SymlinkProvider(Protocol):
    def target(self) -> SymTarget | None: ...


class SymlinkLoopError(OSError):
    """More than ``MAX_SYMLINK_HOPS`` links were followed while checking a path."""


@dataclass(frozen=True)
class Resolved:
    node: Node

    def render(self, config: DetailConfig) -> str:
        return markup(config.style("symlink_ok"), f"-> {self.node.symlink_text}")


@dataclass(frozen=True)
class Broken:
    path: str

    def render(self, config: DetailConfig) -> str:
        return markup(config.style("symlink_broken"), f"-> {self.path}")


@dataclass(frozen=True)
class Cyclic:
    path: str

    def render(self, config: DetailConfig) -> str:
        return markup(config.style("symlink_cyclic"), f"-> {self.path} (cycle)")


@dataclass(frozen=True)
class Failed:
    error: OSError

    def render(self, config: DetailConfig) -> str:
        return markup(config.style("symlink_error"), "-> ?")


SymTarget = Union[Resolved, Broken, Cyclic, Failed]


def path_exists(path: Path, max_hops: int = MAX_SYMLINK_HOPS) -> bool:
    """Return whether absolute ``path`` exists, following symlinks one component at a time.

    A missing component (or a non-directory used as one) means ``False``.
    Following more than ``max_hops`` links raises ``SymlinkLoopError``; any
    other ``OSError`` from ``lstat``/``readlink`` propagates.
    """
    resolved = Path(path.anchor)
    pending = list(reversed(path.parts[1:]))
    hops = 0
    while pending:
        name = pending.pop()
        if name in ("", "."):
            continue
        if name == "..":
            resolved = resolved.parent
            continue
        candidate = resolved / name
        try:
            st = os.lstat(candidate)
        except (FileNotFoundError, NotADirectoryError):
            return False
        if not stat.S_ISLNK(st.st_mode):
            if pending and not stat.S_ISDIR(st.st_mode):
                return False
            resolved = candidate
            continue
        hops += 1
        if hops > max_hops:
            raise SymlinkLoopError(errno.ELOOP, "Too many levels of symbolic links", str(path))
        link = Path(os.readlink(candidate))
        if link.is_absolute():
            resolved = Path(link.anchor)
            pending.extend(reversed(link.parts[1:]))
        else:
            pending.extend(reversed(link.parts))
    return True


class Node:
    """One filesystem entry; its type is fixed at construction.

    Metadata comes from ``lstat`` (symlinks describe themselves) and is fetched
    at most once.
    """

    def __init__(self, path: Path | str, *, symlink_text: str | None = None) -> None:
        self.path = Path(path)
        self.symlink_text = symlink_text
        self._dir_entry: os.DirEntry[str] | None = None
        try:
            self._meta: os.stat_result | None = os.lstat(self.path)
        except OSError:
            self._meta = None
        self._meta_loaded = True
        self.typ = EntryType.OTHER if self._meta is None else EntryType.from_mode(self._meta.st_mode)

    @classmethod
    def from_dir_entry(cls, entry: os.DirEntry[str]) -> Node:
        """Build a node from a scan result without an eager stat call."""
        node = cls.__new__(cls)
        node.path = Path(entry.path)
        node.symlink_text = None
        node._dir_entry = entry
        node._meta = None
        node._meta_loaded = False
        try:
            if entry.is_symlink():
                node.typ = EntryType.SYMLINK
            elif entry.is_dir(follow_symlinks=False):
                node.typ = EntryType.DIR
            elif entry.is_file(follow_symlinks=False):
                node.typ = EntryType.FILE
            else:
                node.typ = EntryType.OTHER
        except OSError:
            node.typ = EntryType.OTHER
        return node

    @property
    def name(self) -> str:
        return self.path.name or str(self.path)

    def stat(self) -> os.stat_result | None:
        if not self._meta_loaded:
            self._meta_loaded = True
            try:
                if self._dir_entry is not None:
                    self._meta = self._dir_entry.stat(follow_symlinks=False)
                else:
                    self._meta = os.lstat(self.path)
            except OSError:
                self._meta = None
        return self._meta

    def target(self) -> SymTarget | None:
        """Resolve where this symlink points; ``None`` for anything else."""
        if self.typ != EntryType.SYMLINK:
            return None
        return resolve_symlink(self.path)

    def render_name(self, config: DetailConfig) -> str:
        return markup(config.style(f"name_{self.typ.value}"), self.name)

    def __repr__(self) -> str:
        return f"Node({str(self.path)!r}, typ={self.typ.value})"


def resolve_symlink(link_path: Path) -> SymTarget:
    """Classify the target of the symlink at ``link_path``.

    Relative link text is joined onto the link's own parent directory, so the
    outcome does not depend on the working directory. ``Broken`` and ``Cyclic``
    carry the link text exactly as ``readlink`` returned it.
    """
    try:
        link_text = os.readlink(link_path)
    except OSError as exc:
        return Failed(exc)

    target_path = Path(link_text)
    if target_path.is_absolute():
        abs_target_path = target_path
    else:
        abs_target_path = Path(link_path).absolute().parent / target_path

    try:
        exists = path_exists(abs_target_path)
    except SymlinkLoopError:
        return Cyclic(link_text)
    except OSError as exc:
        return Failed(exc)

    if not exists:
        return Broken(link_text)
    return Resolved(Node(abs_target_path, symlink_text=link_text))
