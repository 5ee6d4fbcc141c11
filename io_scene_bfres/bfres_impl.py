"""Addon coordinator.

`__init__.py` exposes `register`/`unregister` from this module.
"""

from __future__ import annotations

from .blender import dump, importer


def register() -> None:
    importer.register()
    dump.register()


def unregister() -> None:
    dump.unregister()
    importer.unregister()
