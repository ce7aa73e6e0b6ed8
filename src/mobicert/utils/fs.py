"""
mobicert — filesystem utilities

Purpose
- Atomic writes and guarded deletion for patch application inside a project root.
- Containment checks so a patch can never touch a path outside the project.
- Deterministic source-tree walking for the structural checks.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from mobicert.constants import SKIPPED_SOURCE_DIRS, SOURCE_EXTENSIONS

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_write",
    "is_within",
    "iter_source_files",
    "resolve_within",
    "safe_delete",
    "scratch_directory",
]


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """
    Atomically write ``data`` to ``path``.

    The temp file lives in the destination directory so ``os.replace`` never crosses
    filesystems. Missing parent directories are created.
    """

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target_parent = target.parent.resolve(strict=True)

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        if isinstance(data, bytes):
            with os.fdopen(fd, "wb") as file_handle:
                file_handle.write(data)
                file_handle.flush()
                os.fsync(file_handle.fileno())
        else:
            with os.fdopen(fd, "w", encoding=encoding) as file_handle:
                file_handle.write(data)
                file_handle.flush()
                os.fsync(file_handle.fileno())
        os.replace(temp_path, target)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def is_within(child: PathLike, parent: PathLike) -> bool:
    """Return ``True`` if resolved ``child`` is ``parent`` or lies below it."""

    resolved_parent = Path(parent).resolve()
    resolved_child = Path(child).resolve()
    return resolved_child == resolved_parent or resolved_parent in resolved_child.parents


def resolve_within(root: PathLike, relative: str) -> Path:
    """
    Resolve ``relative`` against ``root`` and refuse anything that escapes it.

    Absolute paths, ``..`` traversal and symlinks pointing outside ``root`` all raise
    ``ValueError``.
    """

    if not relative or "\x00" in relative:
        raise ValueError(f"invalid project-relative path: {relative!r}")
    if Path(relative).is_absolute():
        raise ValueError(f"path must be relative to the project root: {relative}")
    root_path = Path(root).resolve(strict=True)
    candidate = (root_path / relative).resolve()
    if candidate == root_path or not is_within(candidate, root_path):
        raise ValueError(f"path escapes the project root: {relative}")
    return candidate


def safe_delete(path: PathLike, root: PathLike) -> None:
    """Delete a single file only if it is contained within ``root``."""

    target = Path(path)
    if not is_within(target.parent, root):
        raise ValueError(f"refusing to delete path outside project root: {target!s}")
    if target.is_dir() and not target.is_symlink():
        raise IsADirectoryError(f"refusing to delete directory: {target!s}")
    target.unlink(missing_ok=True)


@contextmanager
def scratch_directory(prefix: str = "mobicert-") -> Iterator[Path]:
    """Yield a temporary directory outside any project and remove it on exit."""

    with tempfile.TemporaryDirectory(prefix=prefix) as tmp:
        yield Path(tmp)


def iter_source_files(
    root: PathLike,
    *,
    extensions: Iterable[str] = SOURCE_EXTENSIONS,
    skipped_dirs: Iterable[str] = SKIPPED_SOURCE_DIRS,
) -> Iterator[Path]:
    """Yield source files below ``root`` in sorted order, pruning vendored/build dirs."""

    suffixes = tuple(extensions)
    skipped = frozenset(skipped_dirs)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            name for name in dirnames if name not in skipped and not name.startswith(".")
        )
        for name in sorted(filenames):
            if name.endswith(suffixes) and not name.endswith(".d.ts"):
                yield Path(dirpath) / name
