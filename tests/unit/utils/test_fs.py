"""Tests for containment-checked filesystem helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from mobicert.utils.fs import (
    atomic_write,
    is_within,
    iter_source_files,
    resolve_within,
    safe_delete,
    scratch_directory,
)


def test_atomic_write_creates_parents_and_leaves_no_temp_files(tmp_path: Path) -> None:
    target = tmp_path / "deep" / "dir" / "file.txt"
    atomic_write(target, "first")
    atomic_write(target, b"second")
    assert target.read_text(encoding="utf-8") == "second"
    assert [p.name for p in target.parent.iterdir()] == ["file.txt"]


@pytest.mark.parametrize("relative", ["", "bad\x00name", "/abs/path", "../sibling", "a/../.."])
def test_resolve_within_rejects_escapes(tmp_path: Path, relative: str) -> None:
    with pytest.raises(ValueError):
        resolve_within(tmp_path, relative)


def test_resolve_within_accepts_nested_paths(tmp_path: Path) -> None:
    assert resolve_within(tmp_path, "src/./App.tsx") == tmp_path.resolve() / "src" / "App.tsx"
    assert is_within(tmp_path / "src", tmp_path)
    assert not is_within(tmp_path.parent, tmp_path)


def test_safe_delete_refuses_directories_and_outside_paths(tmp_path: Path) -> None:
    project = tmp_path / "project"
    (project / "dir").mkdir(parents=True)
    (project / "file.ts").write_text("x", encoding="utf-8")
    outside = tmp_path / "outside.ts"
    outside.write_text("x", encoding="utf-8")

    safe_delete(project / "file.ts", project)
    safe_delete(project / "never-existed.ts", project)
    assert not (project / "file.ts").exists()
    with pytest.raises(IsADirectoryError):
        safe_delete(project / "dir", project)
    with pytest.raises(ValueError):
        safe_delete(outside, project)
    assert outside.exists()


def test_iter_source_files_prunes_and_sorts(tmp_path: Path) -> None:
    for relative in (
        "App.tsx",
        "src/b.ts",
        "src/a.js",
        "src/types.d.ts",
        "src/styles.css",
        "node_modules/lib/index.js",
        ".expo/cache.js",
        "android/app/Main.js",
    ):
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("", encoding="utf-8")

    found = [p.relative_to(tmp_path).as_posix() for p in iter_source_files(tmp_path)]
    assert found == ["App.tsx", "src/a.js", "src/b.ts"]


def test_scratch_directory_is_removed() -> None:
    with scratch_directory() as scratch:
        assert scratch.is_dir()
        (scratch / "bundle.js").write_text("x", encoding="utf-8")
    assert not scratch.exists()
