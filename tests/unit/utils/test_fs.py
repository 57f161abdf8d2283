"""Filesystem helpers: extension routing, ignore matching, and deterministic walking."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from defect_radar.utils.fs import (
    file_extension,
    is_within,
    iter_project_files,
    matches_ignore,
    relative_posix,
)
from defect_radar.utils.hashing import fingerprint, sha256_text


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("src/App.JS", ".js"),
        ("config/.env", ".env"),
        ("config/.env.local", ".env"),
        ("Makefile", ""),
        ("archive.tar.gz", ".gz"),
    ],
)
def test_file_extension(path: str, expected: str) -> None:
    assert file_extension(path) == expected


@pytest.mark.parametrize(
    ("relative", "patterns", "expected"),
    [
        ("node_modules/x/index.js", ("node_modules",), True),
        ("packages/a/node_modules/x.js", ("node_modules",), True),
        ("build/out.js", ("build/",), True),
        ("src/builder.js", ("build",), False),
        ("src/app.min.js", ("*.min.js",), True),
        ("docs/generated/api.md", ("docs/generated",), True),
        ("src/app.js", (), False),
        ("src/app.js", ("  ",), False),
    ],
)
def test_matches_ignore(relative: str, patterns: tuple[str, ...], expected: bool) -> None:
    assert matches_ignore(relative, patterns) is expected


def test_relative_posix_and_is_within(tmp_path: Path) -> None:
    inner = tmp_path / "a" / "b.js"

    assert relative_posix(inner, tmp_path) == "a/b.js"
    assert relative_posix(tmp_path.parent, tmp_path) is None
    assert is_within(inner, tmp_path)
    assert is_within(tmp_path, tmp_path)
    assert not is_within(f"{tmp_path}-sibling/x.js", tmp_path)


def test_iter_project_files_is_sorted_and_prunes(tmp_path: Path) -> None:
    for relative in ("z.js", "a.js", "sub/b.py", "node_modules/dep.js", "sub/dist/out.js"):
        target = tmp_path / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text("x", encoding="utf-8")

    found = [path.relative_to(tmp_path).as_posix() for path in iter_project_files(tmp_path, ("node_modules", "dist"))]

    assert found == ["a.js", "z.js", "sub/b.py"]


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_iter_project_files_skips_symlinks(tmp_path: Path) -> None:
    real = tmp_path / "real.js"
    real.write_text("x", encoding="utf-8")
    try:
        (tmp_path / "link.js").symlink_to(real)
    except OSError:
        pytest.skip("symlink creation not permitted")

    assert [path.name for path in iter_project_files(tmp_path, ())] == ["real.js"]


def test_fingerprint_is_unambiguous_across_part_boundaries() -> None:
    assert fingerprint("ab", "c") != fingerprint("a", "bc")
    assert fingerprint("a", None) == fingerprint("a", "")
    assert fingerprint("a") != fingerprint("a", "")
    assert len(sha256_text("x")) == 64
