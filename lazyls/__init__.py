"""Public package surface for lazyls.

Exports ``main`` for programmatic CLI invocation.
Entry decoration lives in ``lazyls.node``, ``lazyls.detail`` and
``lazyls.git_status``.
"""

from __future__ import annotations


def main(*args, **kwargs):
    """Lazily import CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)

__all__ = ["main"]
