"""File-system helpers: cache directory, target walking and file copying."""

from __future__ import annotations

import logging
import os
import shutil
import stat
import sys
import tempfile
from collections.abc import Callable, Container, Iterable, Iterator
from typing import BinaryIO

logger = logging.getLogger(__name__)

_APP_DIR = "vulnscope"
_cache_dir = ""


def _user_cache_dir() -> str:
    if sys.platform == "win32":
        base = os.environ.get("LOCALAPPDATA", "")
        if not base:
            raise OSError("%LocalAppData% is not defined")
        return base
    if sys.platform == "darwin":
        home = os.environ.get("HOME", "")
        if not home:
            raise OSError("$HOME is not defined")
        return os.path.join(home, "Library", "Caches")
    xdg = os.environ.get("XDG_CACHE_HOME", "")
    if xdg:
        return xdg
    home = os.environ.get("HOME", "")
    if not home:
        raise OSError("neither $XDG_CACHE_HOME nor $HOME are defined")
    return os.path.join(home, ".cache")


def default_cache_dir() -> str:
    """Return the default cache directory, falling back to the temp dir."""
    try:
        base = _user_cache_dir()
    except OSError:
        base = tempfile.gettempdir()
    return os.path.join(base, _APP_DIR)


def cache_dir() -> str:
    """Return the directory currently used for caching."""
    return _cache_dir


def set_cache_dir(directory: str) -> None:
    """Set the directory used for caching."""
    global _cache_dir
    _cache_dir = directory


def _iter_files(root: str) -> Iterator[tuple[str, os.DirEntry]]:
    with os.scandir(root) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            yield from _iter_files(entry.path)
        else:
            yield entry.path, entry


def file_walk(
    root: str,
    target_files: Container[str],
    walk_fn: Callable[[BinaryIO, str], None],
) -> None:
    """Call walk_fn(file, path) for every non-empty file under root whose
    path relative to root is in target_files."""
    os.lstat(root)
    for path, entry in _iter_files(root):
        rel = os.path.relpath(path, root)
        if rel not in target_files:
            continue
        if entry.stat(follow_symlinks=False).st_size == 0:
            logger.debug("invalid size: %s", path)
            continue
        with open(path, "rb") as f:
            walk_fn(f, path)


def _relative(base: str, target: str) -> str:
    if os.path.isabs(base) != os.path.isabs(target):
        raise ValueError(f"can't make {target} relative to {base}")
    return os.path.relpath(target, base)


def filter_targets(prefix_path: str, targets: Iterable[str]) -> set[str]:
    """Return targets under prefix_path, made relative to it."""
    outside = ".." + os.sep
    filtered: set[str] = set()
    for filename in targets:
        if not filename.startswith(prefix_path):
            continue
        rel = _relative(prefix_path, filename)
        if rel.startswith(outside):
            continue
        filtered.add(rel)
    return filtered


def copy_file(src: str, dst: str) -> int:
    """Copy a regular file and return the number of bytes written."""
    if not stat.S_ISREG(os.stat(src).st_mode):
        raise ValueError(f"{src} is not a regular file")
    with open(src, "rb") as source, open(dst, "wb") as destination:
        shutil.copyfileobj(source, destination)
        return destination.tell()