"""Verification step: build the workspace and collect the checker's diagnostics."""

from __future__ import annotations

import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Protocol, Sequence

from . import codec, types


class WorkspaceError(RuntimeError):
    """The workspace could not be modified or verified, or produced unusable output."""


class Verifier(Protocol):
    def run(self) -> List[types.Diagnostic]:  # pragma: no cover - protocol
        ...


@dataclass
class CommandVerifier:
    """Run ``build_cmd`` in ``workspace`` and read diagnostics from ``diagnostics_path``.

    The diagnostics file is removed before each run so a stale file from a
    previous build is never mistaken for fresh output.
    """

    build_cmd: str
    workspace: str
    diagnostics_path: str
    timeout_sec: float | None = None
    ok_returncodes: Sequence[int] = (0,)

    @property
    def output_path(self) -> Path:
        return Path(self.workspace) / self.diagnostics_path

    def run(self) -> List[types.Diagnostic]:
        if not self.build_cmd:
            raise WorkspaceError("no build command configured")
        output = self.output_path
        if output.exists():
            output.unlink()
        try:
            proc = subprocess.run(
                shlex.split(self.build_cmd),
                cwd=self.workspace,
                capture_output=True,
                text=True,
                timeout=self.timeout_sec,
            )
        except subprocess.TimeoutExpired as exc:
            raise WorkspaceError(f"build timed out after {exc.timeout}s") from exc
        except OSError as exc:
            raise WorkspaceError(f"build could not start: {exc}") from exc
        if proc.returncode not in self.ok_returncodes:
            raise WorkspaceError(
                f"build exited with {proc.returncode}: {(proc.stdout + proc.stderr).strip()}"
            )
        if not output.exists():
            raise WorkspaceError(f"build produced no diagnostics file at {output}")
        try:
            return codec.load_diagnostics(output)
        except (ValueError, KeyError, TypeError) as exc:
            raise WorkspaceError(f"unusable diagnostics in {output}: {exc}") from exc
