"""User config and the explicit detail context passed to every accessor.

Reads an optional JSON object from the platform config directory. Missing
config means defaults; malformed config raises ``ConfigError`` once at startup
so no listing ever fails half way through on a bad style or format.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

from platformdirs import user_config_dir

from .markup import is_valid_style

APP_NAME = "lazyls"
CONFIG_FILENAME = "config.json"
CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME


class ConfigError(ValueError):
    """Raised when user configuration cannot be turned into a ``DetailConfig``."""


class SizeUnit(str, Enum):
    NONE = "none"
    BINARY = "binary"
    DECIMAL = "decimal"


class TimeField(str, Enum):
    ATIME = "atime"
    BTIME = "btime"
    CTIME = "ctime"
    MTIME = "mtime"


DEFAULT_STYLES: dict[str, str] = {
    "dev": "dimmed",
    "ino": "dimmed",
    "blocks": "dimmed",
    "size_magnitude": "bold",
    "size_prefix": "",
    "size_base": "dimmed",
    "nlink_file_single": "",
    "nlink_file_multiple": "bold red",
    "nlink_dir_single": "bold red",
    "nlink_dir_multiple": "",
    "perm_read": "yellow",
    "perm_write": "red",
    "perm_exec": "green",
    "perm_none": "dimmed",
    "perm_special": "magenta",
    "oct": "blue",
    "oct_special": "magenta",
    "user_self": "bold blue",
    "user_other": "dimmed",
    "group_self": "bold blue",
    "group_other": "dimmed",
    "timestamp": "",
    "git_index": "green",
    "git_worktree": "red",
    "git_untracked": "red",
    "git_ignored": "dimmed",
    "git_conflicted": "bold red",
    "git_directory": "red",
    "name_dir": "bold blue",
    "name_symlink": "cyan",
    "name_file": "",
    "name_other": "yellow",
    "symlink_ok": "",
    "symlink_broken": "red",
    "symlink_cyclic": "yellow",
    "symlink_error": "bold red",
}

DEFAULT_TIMESTAMP_FORMATS: dict[TimeField, str] = {
    TimeField.ATIME: "%d-%b %H:%M",
    TimeField.BTIME: "%d-%b %H:%M",
    TimeField.CTIME: "%d-%b %H:%M",
    TimeField.MTIME: "%d-%b %H:%M",
}

# Directives strftime accepts on every supported platform.
_STRFTIME_DIRECTIVES = frozenset("aAbBcdfGHIjmMpSuUVwWxXyYzZ%")
_STRFTIME_TOKEN_RE = re.compile(r"%(.?)", re.DOTALL)


def validate_timestamp_format(fmt: str) -> str:
    """Return ``fmt`` unchanged, or raise ``ConfigError`` for a bad directive."""
    if not isinstance(fmt, str) or not fmt:
        raise ConfigError(f"timestamp format must be a non-empty string, got {fmt!r}")
    for match in _STRFTIME_TOKEN_RE.finditer(fmt):
        directive = match.group(1)
        if not directive:
            raise ConfigError(f"timestamp format {fmt!r} ends with a lone '%'")
        if directive not in _STRFTIME_DIRECTIVES:
            raise ConfigError(f"timestamp format {fmt!r} uses unsupported directive '%{directive}'")
    return fmt


@dataclass(frozen=True)
class DetailConfig:
    """Style table, timestamp formats and unit preference for one listing."""

    styles: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_STYLES))
    timestamp_formats: dict[TimeField, str] = field(default_factory=lambda: dict(DEFAULT_TIMESTAMP_FORMATS))
    unit: SizeUnit = SizeUnit.BINARY
    git_timeout_seconds: float = 1.0

    def style(self, key: str) -> str:
        return self.styles.get(key, "")

    def validate(self) -> DetailConfig:
        """Check every style and format; raise ``ConfigError`` on the first problem."""
        for key, style in self.styles.items():
            if key not in DEFAULT_STYLES:
                raise ConfigError(f"unknown style key: {key!r}")
            if not isinstance(style, str) or not is_valid_style(style):
                raise ConfigError(f"invalid style for {key!r}: {style!r}")
        for time_field in TimeField:
            validate_timestamp_format(self.timestamp_formats.get(time_field, ""))
        if not isinstance(self.unit, SizeUnit):
            raise ConfigError(f"invalid size unit: {self.unit!r}")
        if self.git_timeout_seconds <= 0:
            raise ConfigError("git_timeout_seconds must be positive")
        return self


def load_config(path: Path | None = None) -> dict[str, object]:
    """Load the JSON config object.

    A missing file yields an empty dict. Unreadable files, malformed JSON and
    non-object documents raise ``ConfigError``.
    """
    config_path = CONFIG_PATH if path is None else path
    if not config_path.exists():
        return {}
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(f"cannot read config {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config {config_path} must contain a JSON object")
    return data


def _parse_unit(value: object) -> SizeUnit:
    try:
        return SizeUnit(value)
    except ValueError as exc:
        names = ", ".join(unit.value for unit in SizeUnit)
        raise ConfigError(f"unit must be one of {names}, got {value!r}") from exc


def _parse_timestamp_formats(value: object) -> dict[TimeField, str]:
    if not isinstance(value, dict):
        raise ConfigError("timestamp_formats must be an object")
    formats = dict(DEFAULT_TIMESTAMP_FORMATS)
    for key, fmt in value.items():
        try:
            time_field = TimeField(key)
        except ValueError as exc:
            raise ConfigError(f"unknown timestamp field: {key!r}") from exc
        formats[time_field] = validate_timestamp_format(fmt)
    return formats


def load_detail_config(data: dict[str, object] | None = None) -> DetailConfig:
    """Overlay user config onto defaults and validate the result."""
    if data is None:
        data = load_config()
    config = DetailConfig()

    styles = data.get("styles")
    if styles is not None:
        if not isinstance(styles, dict):
            raise ConfigError("styles must be an object")
        config = replace(config, styles={**DEFAULT_STYLES, **styles})

    formats = data.get("timestamp_formats")
    if formats is not None:
        config = replace(config, timestamp_formats=_parse_timestamp_formats(formats))

    unit = data.get("unit")
    if unit is not None:
        config = replace(config, unit=_parse_unit(unit))

    timeout = data.get("git_timeout_seconds")
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            raise ConfigError("git_timeout_seconds must be a number")
        config = replace(config, git_timeout_seconds=float(timeout))

    return config.validate()
