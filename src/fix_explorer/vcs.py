"""VCS plumbing helpers built on Git."""

from __future__ import annotations

import subprocess
from typing import Any, Optional


def _normalize_diff(diff: str) -> str:
    lines = diff.splitlines()
    output: list[str] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith("diff --git"):
            output.append(line)
            parts = line.split()
            a_path = parts[2]
            b_path = parts[3]
            i += 1
            if i < len(lines) and lines[i].startswith("--- "):
                output.append(lines[i])
                i += 1
            else:
                output.append(f"--- {a_path}")
            if i < len(lines) and lines[i].startswith("+++ "):
                output.append(lines[i])
                i += 1
            else:
                output.append(f"+++ {b_path}")
            continue
        output.append(line)
        i += 1
    text = "\n".join(output)
    if not text.endswith("\n"):
        text += "\n"
    return text


def _run_git(
    repo_path: str,
    *args: str,
    check: bool = True,
    input: Optional[str] = None,
    **kwargs: Any,
) -> subprocess.CompletedProcess[str]:
    proc = subprocess.run(
        ["git", *args],
        cwd=repo_path,
        input=input,
        text=True,
        capture_output=True,
        **kwargs,
    )
    if check and proc.returncode != 0:
        raise RuntimeError(proc.stderr or proc.stdout)
    return proc


def apply_diff(diff: str, repo_path: str) -> None:
    """Apply a unified diff to the working tree."""

    _run_git(repo_path, "apply", "-", input=_normalize_diff(diff))


def reverse_diff(diff: str, repo_path: str) -> None:
    """Undo a previously applied unified diff."""

    _run_git(repo_path, "apply", "-R", "-", input=_normalize_diff(diff))


def is_applied(diff: str, repo_path: str) -> bool:
    """True when *diff* can be reversed cleanly, i.e. it is already in the tree."""

    proc = _run_git(repo_path, "apply", "-R", "--check", "-", input=_normalize_diff(diff), check=False)
    return proc.returncode == 0


def checkpoint(repo_path: str) -> str:
    """Return the current HEAD commit hash."""

    proc = _run_git(repo_path, "rev-parse", "HEAD")
    return proc.stdout.strip()


def working_tree_diff(repo_path: str) -> str:
    """Return the diff between HEAD and the working tree."""

    proc = _run_git(repo_path, "diff", "HEAD")
    return proc.stdout
