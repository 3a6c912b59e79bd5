"""Lightweight style markup shared by detail renderers and the printer.

Detail accessors wrap values as ``<style>value</style>`` where ``style`` is a
space-separated list of directives such as ``bold red``. Only the printer turns
markup into ANSI escape sequences.
"""

from __future__ import annotations

import re

STYLE_DIRECTIVES: dict[str, str] = {
    "bold": "1",
    "dimmed": "2",
    "italic": "3",
    "underline": "4",
    "reversed": "7",
    "black": "30",
    "red": "31",
    "green": "32",
    "yellow": "33",
    "blue": "34",
    "magenta": "35",
    "cyan": "36",
    "white": "37",
    "bright_black": "90",
    "bright_red": "91",
    "bright_green": "92",
    "bright_yellow": "93",
    "bright_blue": "94",
    "bright_magenta": "95",
    "bright_cyan": "96",
    "bright_white": "97",
}

_RESET = "\033[0m"
_TAG_RE = re.compile(r"<(/?)([a-z_ ]+)>")
_ENTITY_RE = re.compile(r"&(amp|lt);")
_ENTITIES = {"amp": "&", "lt": "<"}


def is_valid_style(style: str) -> bool:
    """Return whether every directive in ``style`` is known."""
    return all(directive in STYLE_DIRECTIVES for directive in style.split())


def escape(text: str) -> str:
    """Escape ``&`` and ``<`` so a value can never be read as a tag."""
    return text.replace("&", "&amp;").replace("<", "&lt;")


def unescape(text: str) -> str:
    return _ENTITY_RE.sub(lambda match: _ENTITIES[match.group(1)], text)


def markup(style: str, value: object) -> str:
    """Wrap the escaped ``value`` in a style tag, or return it bare for an empty style."""
    text = escape(str(value))
    style = " ".join(style.split())
    if not style:
        return text
    return f"<{style}>{text}</{style}>"


def _sgr(style: str) -> str:
    codes = [STYLE_DIRECTIVES[directive] for directive in style.split()]
    return f"\033[{';'.join(codes)}m"


def render(text: str, color: bool = True) -> str:
    """Translate markup tags into ANSI SGR sequences.

    Tags nest; closing a tag resets and re-applies every style still open.
    Tags with unknown directives are left in the text untouched. With
    ``color=False`` recognised tags are removed. Values escaped by ``markup``
    come back as typed.
    """
    out: list[str] = []
    stack: list[str] = []
    position = 0
    for match in _TAG_RE.finditer(text):
        closing, style = match.group(1) == "/", " ".join(match.group(2).split())
        if not style or not is_valid_style(style):
            continue
        out.append(unescape(text[position:match.start()]))
        position = match.end()
        if not closing:
            stack.append(style)
            if color:
                out.append(_sgr(style))
            continue
        if style in stack:
            del stack[len(stack) - 1 - stack[::-1].index(style)]
        if color:
            out.append(_RESET)
            out.extend(_sgr(open_style) for open_style in stack)
    out.append(unescape(text[position:]))
    if color and stack:
        out.append(_RESET)
    return "".join(out)


def strip_markup(text: str) -> str:
    """Return ``text`` without recognised markup tags."""
    return render(text, color=False)
