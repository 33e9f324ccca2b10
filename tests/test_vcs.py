import subprocess
from pathlib import Path

import pytest

from fix_explorer import vcs

PATCH = """diff --git a/file.txt b/file.txt
--- a/file.txt
+++ b/file.txt
@@ -1 +1 @@
-hello
+hello world
"""


def _init_repo(path: Path) -> None:
    subprocess.run(["git", "init"], cwd=path, check=True, capture_output=True)
    subprocess.run(["git", "config", "user.email", "test@example.com"], cwd=path, check=True)
    subprocess.run(["git", "config", "user.name", "Test User"], cwd=path, check=True)
    (path / "file.txt").write_text("hello\n")
    subprocess.run(["git", "add", "file.txt"], cwd=path, check=True)
    subprocess.run(["git", "commit", "-m", "init"], cwd=path, check=True, capture_output=True)


def test_apply_then_reverse_restores_tree(tmp_path: Path):
    _init_repo(tmp_path)
    head = vcs.checkpoint(str(tmp_path))
    assert not vcs.is_applied(PATCH, str(tmp_path))
    vcs.apply_diff(PATCH, str(tmp_path))
    assert (tmp_path / "file.txt").read_text() == "hello world\n"
    assert vcs.is_applied(PATCH, str(tmp_path))
    assert "hello world" in vcs.working_tree_diff(str(tmp_path))
    vcs.reverse_diff(PATCH, str(tmp_path))
    assert (tmp_path / "file.txt").read_text() == "hello\n"
    assert vcs.working_tree_diff(str(tmp_path)) == ""
    assert vcs.checkpoint(str(tmp_path)) == head


def test_normalize_diff_adds_missing_headers():
    diff = "diff --git a/file.txt b/file.txt\n@@ -1 +1 @@\n-hello\n+hello world"
    normalized = vcs._normalize_diff(diff)
    assert normalized.splitlines()[1:3] == ["--- a/file.txt", "+++ b/file.txt"]
    assert normalized.endswith("\n")


def test_apply_rejects_non_matching_diff(tmp_path: Path):
    _init_repo(tmp_path)
    with pytest.raises(RuntimeError):
        vcs.apply_diff(PATCH.replace("-hello\n", "-goodbye\n"), str(tmp_path))
