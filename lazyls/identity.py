"""User and group name lookups memoized for one listing pass."""

from __future__ import annotations

import grp
import os
import pwd
from dataclasses import dataclass
from enum import Enum

from .config import DetailConfig
from .markup import markup


class IdentityKind(str, Enum):
    USER = "user"
    GROUP = "group"


@dataclass(frozen=True)
class Identity:
    """A uid or gid with its display name and whether it is the invoker's own."""

    kind: IdentityKind
    id: int
    name: str | None
    is_current: bool

    def _style(self, config: DetailConfig) -> str:
        suffix = "self" if self.is_current else "other"
        return config.style(f"{self.kind.value}_{suffix}")

    def render_name(self, config: DetailConfig) -> str:
        """Marked-up name, falling back to the numeric id when unnamed."""
        return markup(self._style(config), self.name if self.name is not None else self.id)

    def render_id(self, config: DetailConfig) -> str:
        return markup(self._style(config), self.id)


def _lookup_user_name(uid: int) -> str | None:
    try:
        return pwd.getpwuid(uid).pw_name
    except (KeyError, OverflowError):
        return None


def _lookup_group_name(gid: int) -> str | None:
    try:
        return grp.getgrgid(gid).gr_name
    except (KeyError, OverflowError):
        return None


def _current_group_ids() -> frozenset[int]:
    try:
        supplementary = os.getgroups()
    except OSError:
        supplementary = []
    return frozenset([os.getegid(), *supplementary])


class IdentityCache:
    """Memoizes uid/gid lookups; not safe for concurrent use.

    One cache is shared by every node of a listing so each distinct id hits
    the password/group database once.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[IdentityKind, int], Identity] = {}
        self._euid = os.geteuid()
        self._gids: frozenset[int] | None = None

    def user(self, uid: int) -> Identity:
        key = (IdentityKind.USER, uid)
        identity = self._entries.get(key)
        if identity is None:
            identity = Identity(IdentityKind.USER, uid, _lookup_user_name(uid), uid == self._euid)
            self._entries[key] = identity
        return identity

    def group(self, gid: int) -> Identity:
        key = (IdentityKind.GROUP, gid)
        identity = self._entries.get(key)
        if identity is None:
            if self._gids is None:
                self._gids = _current_group_ids()
            identity = Identity(IdentityKind.GROUP, gid, _lookup_group_name(gid), gid in self._gids)
            self._entries[key] = identity
        return identity

    def __len__(self) -> int:
        return len(self._entries)
