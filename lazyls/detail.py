"""Per-entry detail columns rendered as markup.

Every accessor takes the node and an explicit ``DetailConfig`` and returns
``None`` when the entry's metadata cannot be read, so one unreadable entry
never stops the rest of a listing.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from .config import DetailConfig, SizeUnit, TimeField
from .git_status import GitStatusResolver
from .identity import IdentityCache
from .markup import markup
from .node import EntryType, MetadataProvider
from .perm import Permissions

logger = logging.getLogger(__name__)

_BINARY_PREFIXES = ("", "Ki", "Mi", "Gi", "Ti", "Pi", "Ei")
_DECIMAL_PREFIXES = ("", "k", "M", "G", "T", "P", "E")


def size_value(node: MetadataProvider) -> int | None:
    """Byte size; ``None`` for directories."""
    meta = node.stat()
    if meta is None or node.typ == EntryType.DIR:
        return None
    return meta.st_size


def blocks_value(node: MetadataProvider) -> int | None:
    """Allocated block count; ``None`` for directories or without ``st_blocks``."""
    meta = node.stat()
    if meta is None or node.typ == EntryType.DIR:
        return None
    return getattr(meta, "st_blocks", None)


def time_value(node: MetadataProvider, field: TimeField) -> datetime | None:
    """Return the requested timestamp as an aware UTC datetime."""
    meta = node.stat()
    if meta is None:
        return None
    if field == TimeField.ATIME:
        seconds = meta.st_atime
    elif field == TimeField.BTIME:
        seconds = getattr(meta, "st_birthtime", None)
    elif field == TimeField.CTIME:
        seconds = meta.st_ctime
    else:
        seconds = meta.st_mtime
    if seconds is None:
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def user_value(node: MetadataProvider, identities: IdentityCache) -> str | None:
    meta = node.stat()
    return None if meta is None else identities.user(meta.st_uid).name


def group_value(node: MetadataProvider, identities: IdentityCache) -> str | None:
    meta = node.stat()
    return None if meta is None else identities.group(meta.st_gid).name


def current_utc_offset() -> timedelta:
    offset = datetime.now().astimezone().utcoffset()
    if offset is None:
        raise ValueError("local timezone has no UTC offset")
    return offset


def local_timezone() -> timezone:
    """Timezone for the current local offset, or UTC when it is unknown."""
    try:
        return timezone(current_utc_offset())
    except (OSError, OverflowError, ValueError) as exc:
        logger.warning("Could not determine UTC offset, showing times in UTC: %s", exc)
        return timezone.utc


def format_size(size: int, config: DetailConfig) -> str:
    if config.unit == SizeUnit.NONE:
        return markup(config.style("size_magnitude"), size)

    base, prefixes = (1024, _BINARY_PREFIXES) if config.unit == SizeUnit.BINARY else (1000, _DECIMAL_PREFIXES)
    value = float(size)
    exponent = 0
    while value >= base and exponent < len(prefixes) - 1:
        value /= base
        exponent += 1
    magnitude = str(size) if exponent == 0 else f"{value:.1f}"
    return (
        markup(config.style("size_magnitude"), magnitude)
        + " "
        + markup(config.style("size_prefix"), prefixes[exponent])
        + markup(config.style("size_base"), "B")
    )


def dev(node: MetadataProvider, config: DetailConfig) -> str | None:
    meta = node.stat()
    return None if meta is None else markup(config.style("dev"), meta.st_dev)


def ino(node: MetadataProvider, config: DetailConfig) -> str | None:
    meta = node.stat()
    return None if meta is None else markup(config.style("ino"), meta.st_ino)


def nlink(node: MetadataProvider, config: DetailConfig) -> str | None:
    """Hard-link count; a file with several links or a directory with one stands out."""
    meta = node.stat()
    if meta is None:
        return None
    kind = "dir" if node.typ == EntryType.DIR else "file"
    count = "multiple" if meta.st_nlink > 1 else "single"
    return markup(config.style(f"nlink_{kind}_{count}"), meta.st_nlink)


def perm(node: MetadataProvider, config: DetailConfig) -> str | None:
    meta = node.stat()
    return None if meta is None else Permissions.from_mode(meta.st_mode).symbolic(config)


def octal(node: MetadataProvider, config: DetailConfig) -> str | None:
    meta = node.stat()
    return None if meta is None else Permissions.from_mode(meta.st_mode).octal(config)


def user(node: MetadataProvider, identities: IdentityCache, config: DetailConfig) -> str | None:
    meta = node.stat()
    return None if meta is None else identities.user(meta.st_uid).render_name(config)


def uid(node: MetadataProvider, identities: IdentityCache, config: DetailConfig) -> str | None:
    meta = node.stat()
    return None if meta is None else identities.user(meta.st_uid).render_id(config)


def group(node: MetadataProvider, identities: IdentityCache, config: DetailConfig) -> str | None:
    meta = node.stat()
    return None if meta is None else identities.group(meta.st_gid).render_name(config)


def gid(node: MetadataProvider, identities: IdentityCache, config: DetailConfig) -> str | None:
    meta = node.stat()
    return None if meta is None else identities.group(meta.st_gid).render_id(config)


def size(node: MetadataProvider, config: DetailConfig) -> str | None:
    value = size_value(node)
    return None if value is None else format_size(value, config)


def blocks(node: MetadataProvider, config: DetailConfig) -> str | None:
    value = blocks_value(node)
    return None if value is None else markup(config.style("blocks"), value)


def time(node: MetadataProvider, field: TimeField, config: DetailConfig, tz: timezone | None = None) -> str | None:
    """Timestamp in ``tz`` using the already-validated format for ``field``.

    Callers rendering many entries pass the zone from one ``local_timezone()``
    call; without it the local zone is looked up here.
    """
    value = time_value(node, field)
    if value is None:
        return None
    local = value.astimezone(tz if tz is not None else local_timezone())
    return markup(config.style("timestamp"), local.strftime(config.timestamp_formats[field]))


def git(node: MetadataProvider, resolver: GitStatusResolver, config: DetailConfig) -> str:
    """Two-character git status column; blank when the entry is not in a repository."""
    return resolver.status(node).render(config)
