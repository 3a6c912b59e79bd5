"""Permission bits rendered as ``rwxr-xr-x`` and as octal digits."""

from __future__ import annotations

import stat
from dataclasses import dataclass

from .config import DetailConfig
from .markup import markup

# (read, write, exec, special bit, special char) per user/group/other triad.
_TRIADS = (
    (stat.S_IRUSR, stat.S_IWUSR, stat.S_IXUSR, stat.S_ISUID, "s"),
    (stat.S_IRGRP, stat.S_IWGRP, stat.S_IXGRP, stat.S_ISGID, "s"),
    (stat.S_IROTH, stat.S_IWOTH, stat.S_IXOTH, stat.S_ISVTX, "t"),
)


@dataclass(frozen=True)
class Permissions:
    """The twelve permission bits of a mode (``S_IMODE``)."""

    bits: int

    @classmethod
    def from_mode(cls, mode: int) -> Permissions:
        return cls(stat.S_IMODE(mode))

    @classmethod
    def from_symbolic(cls, text: str) -> Permissions:
        """Parse the nine-character form produced by ``symbolic_chars``."""
        if len(text) != 9:
            raise ValueError(f"expected 9 permission characters, got {text!r}")
        bits = 0
        for index, (read, write, execute, special, special_char) in enumerate(_TRIADS):
            r, w, x = text[index * 3:index * 3 + 3]
            if r == "r":
                bits |= read
            if w == "w":
                bits |= write
            if x in ("x", special_char):
                bits |= execute
            if x in (special_char, special_char.upper()):
                bits |= special
        return cls(bits)

    def symbolic_chars(self) -> list[tuple[str, str]]:
        """Return ``(char, style key)`` pairs for the nine symbolic positions."""
        chars: list[tuple[str, str]] = []
        for read, write, execute, special, special_char in _TRIADS:
            chars.append(("r", "perm_read") if self.bits & read else ("-", "perm_none"))
            chars.append(("w", "perm_write") if self.bits & write else ("-", "perm_none"))
            if self.bits & special:
                char = special_char if self.bits & execute else special_char.upper()
                chars.append((char, "perm_special"))
            else:
                chars.append(("x", "perm_exec") if self.bits & execute else ("-", "perm_none"))
        return chars

    def symbolic(self, config: DetailConfig) -> str:
        return "".join(markup(config.style(key), char) for char, key in self.symbolic_chars())

    def octal_text(self) -> str:
        return f"{self.bits:04o}"

    def octal(self, config: DetailConfig) -> str:
        text = self.octal_text()
        special_key = "oct_special" if self.bits & 0o7000 else "oct"
        return markup(config.style(special_key), text[0]) + markup(config.style("oct"), text[1:])
