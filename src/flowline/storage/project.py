"""Locating and laying out a Flowline project on disk.

A project is any directory that holds a ``.flowline/`` folder::

    .flowline/
        config.json
        initiatives/<id>.json
        locks/<id>.lock
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

FLOWLINE_DIR = ".flowline"
FLOWLINE_ROOT_ENV = "FLOWLINE_ROOT"
PROJECT_SUBDIRS: tuple[str, ...] = ("initiatives", "locks")


class FlowlineRootError(Exception):
    """FLOWLINE_ROOT is set but does not name a Flowline project."""


def _root_from_env(value: str) -> Path:
    if not value:
        raise FlowlineRootError(f"{FLOWLINE_ROOT_ENV} is set but empty")
    root = Path(value)
    if not root.is_dir():
        raise FlowlineRootError(f"{FLOWLINE_ROOT_ENV}={value} is not a directory")
    if not (root / FLOWLINE_DIR).is_dir():
        raise FlowlineRootError(f"{FLOWLINE_ROOT_ENV}={value} has no {FLOWLINE_DIR}/ folder")
    return root


def find_root(start: Path | None = None) -> Path | None:
    """Return the nearest directory at or above *start* holding ``.flowline/``.

    ``FLOWLINE_ROOT`` replaces the search entirely.  ``None`` means no
    project was found.
    """
    override = os.environ.get(FLOWLINE_ROOT_ENV)
    if override is not None:
        return _root_from_env(override)
    here = (start or Path.cwd()).resolve()
    for candidate in (here, *here.parents):
        if (candidate / FLOWLINE_DIR).is_dir():
            return candidate
    return None


def replace_file(path: Path, text: str) -> None:
    """Make *text* the content of *path* in one rename.

    The text is written and fsynced to a sibling temp file first, so a
    reader sees the old file or the new one and never a partial write.
    """
    handle = tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", delete=False
    )
    try:
        with handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(handle.name, path)
    except BaseException:
        Path(handle.name).unlink(missing_ok=True)
        raise


def init_project(root: Path, config_text: str) -> Path:
    """Create ``.flowline/`` under *root*, write its config and return it."""
    flowline_dir = root / FLOWLINE_DIR
    for name in PROJECT_SUBDIRS:
        (flowline_dir / name).mkdir(parents=True, exist_ok=True)
    replace_file(flowline_dir / "config.json", config_text)
    return flowline_dir
