"""Per-entry git status codes without whole-repository scans.

Files ask git about exactly one path. Directories first look for a status on
the directory path itself and otherwise run one status query whose pathspec
only matches the directory's immediate children.
"""

from __future__ import annotations

import enum
import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .config import DetailConfig
from .markup import markup
from .node import EntryType, StatusProvider

logger = logging.getLogger(__name__)

_CONFLICT_PAIRS = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})
_GLOB_SPECIAL = str.maketrans({char: f"\\{char}" for char in "*?[]\\"})


class StatusFlags(enum.IntFlag):
    CURRENT = 0
    INDEX_NEW = 1 << 0
    INDEX_MODIFIED = 1 << 1
    INDEX_DELETED = 1 << 2
    INDEX_RENAMED = 1 << 3
    INDEX_TYPECHANGE = 1 << 4
    WT_NEW = 1 << 7
    WT_MODIFIED = 1 << 8
    WT_DELETED = 1 << 9
    WT_TYPECHANGE = 1 << 10
    WT_RENAMED = 1 << 11
    IGNORED = 1 << 14
    CONFLICTED = 1 << 15


_INDEX_FLAGS = (
    StatusFlags.INDEX_NEW
    | StatusFlags.INDEX_MODIFIED
    | StatusFlags.INDEX_DELETED
    | StatusFlags.INDEX_RENAMED
    | StatusFlags.INDEX_TYPECHANGE
)

_INDEX_CHARS = {
    "A": StatusFlags.INDEX_NEW,
    "C": StatusFlags.INDEX_NEW,
    "M": StatusFlags.INDEX_MODIFIED,
    "D": StatusFlags.INDEX_DELETED,
    "R": StatusFlags.INDEX_RENAMED,
    "T": StatusFlags.INDEX_TYPECHANGE,
}
_WORKTREE_CHARS = {
    "A": StatusFlags.WT_NEW,
    "M": StatusFlags.WT_MODIFIED,
    "D": StatusFlags.WT_DELETED,
    "R": StatusFlags.WT_RENAMED,
    "T": StatusFlags.WT_TYPECHANGE,
}

# First match wins on each side.
_INDEX_ORDER = (
    (StatusFlags.INDEX_NEW, "A"),
    (StatusFlags.INDEX_MODIFIED, "M"),
    (StatusFlags.INDEX_DELETED, "D"),
    (StatusFlags.INDEX_RENAMED, "R"),
    (StatusFlags.INDEX_TYPECHANGE, "T"),
)
_WORKTREE_ORDER = (
    (StatusFlags.WT_NEW, "?"),
    (StatusFlags.WT_MODIFIED, "M"),
    (StatusFlags.WT_DELETED, "D"),
    (StatusFlags.WT_RENAMED, "R"),
    (StatusFlags.WT_TYPECHANGE, "T"),
)


@dataclass(frozen=True)
class GitStatusCode:
    """Two-character status: index side then worktree side."""

    index: str = " "
    worktree: str = " "

    @property
    def code(self) -> str:
        return self.index + self.worktree

    @property
    def is_blank(self) -> bool:
        return self.code == "  "

    def render(self, config: DetailConfig) -> str:
        if self == IGNORED:
            return markup(config.style("git_ignored"), self.code)
        if self == CONFLICTED:
            return markup(config.style("git_conflicted"), self.code)
        if self == UNTRACKED:
            return markup(config.style("git_untracked"), self.code)
        if self == DIRECTORY_MODIFIED:
            return markup(config.style("git_directory"), self.code)
        index = self.index if self.index == " " else markup(config.style("git_index"), self.index)
        worktree = self.worktree if self.worktree == " " else markup(config.style("git_worktree"), self.worktree)
        return index + worktree


BLANK = GitStatusCode(" ", " ")
IGNORED = GitStatusCode("!", "!")
CONFLICTED = GitStatusCode("U", "U")
UNTRACKED = GitStatusCode("?", "?")
DIRECTORY_MODIFIED = GitStatusCode(" ", "*")


def flags_from_porcelain(xy: str) -> StatusFlags:
    """Decode a porcelain v1 ``XY`` pair into status bits."""
    if xy == "??":
        return StatusFlags.WT_NEW
    if xy == "!!":
        return StatusFlags.IGNORED
    if xy in _CONFLICT_PAIRS:
        return StatusFlags.CONFLICTED
    flags = StatusFlags.CURRENT
    flags |= _INDEX_CHARS.get(xy[0], StatusFlags.CURRENT)
    flags |= _WORKTREE_CHARS.get(xy[1], StatusFlags.CURRENT)
    return flags


def status_code_from_flags(flags: StatusFlags) -> GitStatusCode:
    """Map status bits to a display code; overrides win over per-side chars."""
    if not flags:
        return BLANK
    if flags & StatusFlags.IGNORED:
        return IGNORED
    if flags & StatusFlags.CONFLICTED:
        return CONFLICTED
    if flags & StatusFlags.WT_NEW and not flags & _INDEX_FLAGS:
        return UNTRACKED
    index = next((char for flag, char in _INDEX_ORDER if flags & flag), " ")
    worktree = next((char for flag, char in _WORKTREE_ORDER if flags & flag), " ")
    return GitStatusCode(index, worktree)


def parse_porcelain_records(output: str) -> list[tuple[str, str]]:
    """Split ``status --porcelain=v1 -z`` output into ``(XY, path)`` records."""
    records: list[tuple[str, str]] = []
    tokens = output.split("\0")
    index = 0
    while index < len(tokens):
        token = tokens[index]
        index += 1
        if len(token) < 4 or token[2] != " ":
            continue

        status = token[:2]
        records.append((status, token[3:]))

        # Renames and copies carry the source path as an extra token.
        if "R" in status or "C" in status:
            index += 1

    return records


def _glob_escape(text: str) -> str:
    return text.translate(_GLOB_SPECIAL)


class GitStatusResolver:
    """Computes status codes, caching repository discovery per directory.

    One resolver belongs to one listing pass; it is not thread-safe and its
    cache is never persisted.
    """

    def __init__(self, timeout_seconds: float = 1.0) -> None:
        self.timeout_seconds = timeout_seconds
        self._repo_roots: dict[Path, Path | None] = {}
        self._git_available: bool | None = None

    def _run_git(self, cwd: Path, args: list[str]) -> subprocess.CompletedProcess[str] | None:
        try:
            return subprocess.run(
                ["git", "-C", str(cwd), *args],
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
                timeout=self.timeout_seconds,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            logger.debug("git %s failed in %s: %s", args[0], cwd, exc)
            return None

    def repo_root(self, directory: Path) -> Path | None:
        """Return the work tree containing ``directory``, or ``None``."""
        if directory in self._repo_roots:
            return self._repo_roots[directory]
        if self._git_available is None:
            self._git_available = shutil.which("git") is not None
        root: Path | None = None
        if self._git_available:
            proc = self._run_git(directory, ["rev-parse", "--show-toplevel"])
            if proc is not None and proc.returncode == 0 and proc.stdout.strip():
                root = Path(proc.stdout.strip()).resolve()
        self._repo_roots[directory] = root
        return root

    def is_ignored(self, repo_root: Path, rel_path: str) -> bool:
        proc = self._run_git(repo_root, ["check-ignore", "-q", "--no-index", "--", rel_path])
        return proc is not None and proc.returncode == 0

    def _status_records(self, repo_root: Path, pathspec: str, untracked: str) -> list[tuple[str, str]] | None:
        proc = self._run_git(
            repo_root,
            ["status", "--porcelain=v1", "-z", f"--untracked-files={untracked}", "--", pathspec],
        )
        if proc is None or proc.returncode != 0:
            return None
        return parse_porcelain_records(proc.stdout)

    def file_status(self, repo_root: Path, rel_path: str) -> GitStatusCode:
        records = self._status_records(repo_root, f":(literal){rel_path}", "all")
        if not records:
            return BLANK
        flags = StatusFlags.CURRENT
        for status, path_text in records:
            if path_text == rel_path:
                flags |= flags_from_porcelain(status)
        return status_code_from_flags(flags)

    def _reports_itself(self, repo_root: Path, rel_path: str) -> bool:
        """Whether git reports ``rel_path`` as one record: a submodule, or wholly untracked.

        Only the index is consulted, so no status walk of the subtree happens.
        """
        proc = self._run_git(
            repo_root,
            [
                "ls-files",
                "--cached",
                "-s",
                "-z",
                "--",
                f":(literal){rel_path}",
                f":(exclude,glob){_glob_escape(rel_path)}/**",
            ],
        )
        if proc is None or proc.returncode != 0:
            return False
        if any(entry.startswith("160000 ") for entry in proc.stdout.split("\0")):
            return True
        proc = self._run_git(repo_root, ["ls-files", "--cached", "--error-unmatch", "--", f":(literal){rel_path}"])
        return proc is not None and proc.returncode == 1

    def directory_status(self, repo_root: Path, rel_path: str) -> GitStatusCode:
        if rel_path and self._reports_itself(repo_root, rel_path):
            records = self._status_records(repo_root, f":(literal){rel_path}", "normal") or []
            own = [status for status, path_text in records if path_text.rstrip("/") == rel_path]
            if own:
                flags = StatusFlags.CURRENT
                for status in own:
                    flags |= flags_from_porcelain(status)
                return status_code_from_flags(flags)

        prefix = f"{rel_path}/" if rel_path else ""
        pathspec = f":(glob){_glob_escape(prefix)}*"
        records = self._status_records(repo_root, pathspec, "normal")
        if not records:
            return BLANK
        for _status, path_text in records:
            if not path_text.startswith(prefix):
                continue
            child = path_text[len(prefix):].rstrip("/")
            if child and "/" not in child:
                return DIRECTORY_MODIFIED
        return BLANK

    def status(self, node: StatusProvider) -> GitStatusCode:
        """Return the display code for ``node``; blank whenever git cannot say."""
        try:
            absolute_path = node.path.resolve(strict=True)
        except (OSError, RuntimeError):
            return BLANK

        is_dir = node.typ == EntryType.DIR or (node.typ == EntryType.SYMLINK and absolute_path.is_dir())
        repo_root = self.repo_root(absolute_path if is_dir else absolute_path.parent)
        if repo_root is None:
            return BLANK

        try:
            relative = absolute_path.relative_to(repo_root)
        except ValueError:
            return BLANK
        rel_path = relative.as_posix() if relative.parts else ""

        if rel_path and self.is_ignored(repo_root, rel_path):
            return IGNORED
        if is_dir:
            return self.directory_status(repo_root, rel_path)
        return self.file_status(repo_root, rel_path)
