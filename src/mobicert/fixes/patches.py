"""Apply fix patches to a project directory with containment, atomic writes and rollback."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from mobicert.utils.fs import atomic_write, resolve_within, safe_delete

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from mobicert.fixes.contract import FilePatch


class PatchApplicationError(RuntimeError):
    """A patch could not be applied; the repair attempt is fatal.

    ``left_modified`` names files that still differ from their pre-batch state because
    restoring them failed too. It is empty whenever the rollback succeeded.
    """

    def __init__(self, path: str, detail: str, *, left_modified: tuple[str, ...] = ()) -> None:
        self.path = path
        self.detail = detail
        self.left_modified = left_modified
        super().__init__(f"cannot apply patch to {path}: {detail}")


def apply_patches(
    project_root: Path, patches: Sequence[FilePatch], *, logger: Any | None = None
) -> tuple[str, ...]:
    """Apply ``patches`` in order and return the project-relative paths touched.

    Every target is resolved and snapshotted before anything is written, so a patch escaping
    the project root rejects the whole batch untouched. A write failing mid-batch restores
    the files already patched.
    """

    log = logger if logger is not None else structlog.get_logger(__name__)
    targets: list[tuple[FilePatch, Path]] = []
    snapshots: dict[str, tuple[Path, bytes | None]] = {}
    for patch in patches:
        try:
            target = resolve_within(project_root, patch.path)
            if patch.path not in snapshots:
                snapshots[patch.path] = (target, target.read_bytes() if target.is_file() else None)
        except (OSError, ValueError) as exc:
            raise PatchApplicationError(patch.path, str(exc)) from exc
        targets.append((patch, target))

    applied: list[str] = []
    for patch, target in targets:
        try:
            if patch.delete:
                safe_delete(target, project_root)
            else:
                assert patch.content is not None
                atomic_write(target, patch.content)
        except (OSError, ValueError) as exc:
            left = _restore(project_root, applied, snapshots, log)
            raise PatchApplicationError(patch.path, str(exc), left_modified=left) from exc
        log.debug("patch_applied", path=patch.path, delete=patch.delete)
        applied.append(patch.path)
    return tuple(dict.fromkeys(applied))


def _restore(
    project_root: Path,
    applied: Sequence[str],
    snapshots: dict[str, tuple[Path, bytes | None]],
    log: Any,
) -> tuple[str, ...]:
    failed: list[str] = []
    for relative in reversed(dict.fromkeys(applied)):
        target, original = snapshots[relative]
        try:
            if original is None:
                safe_delete(target, project_root)
            else:
                atomic_write(target, original)
        except (OSError, ValueError) as exc:
            log.error("patch_rollback_failed", path=relative, error=str(exc))
            failed.append(relative)
    if applied:
        log.warning("patch_batch_rolled_back", restored=len(set(applied)) - len(failed))
    return tuple(reversed(failed))


__all__ = ["PatchApplicationError", "apply_patches"]
