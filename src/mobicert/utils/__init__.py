"""Utility exports for filesystem and concurrency helpers."""

from mobicert.utils.concurrency import (
    CancellationToken,
    ProjectLockRegistry,
    WorkerPool,
    run_with_timeout,
)
from mobicert.utils.fs import (
    atomic_write,
    is_within,
    iter_source_files,
    resolve_within,
    safe_delete,
    scratch_directory,
)

__all__ = [
    "CancellationToken",
    "ProjectLockRegistry",
    "WorkerPool",
    "atomic_write",
    "is_within",
    "iter_source_files",
    "resolve_within",
    "run_with_timeout",
    "safe_delete",
    "scratch_directory",
]
