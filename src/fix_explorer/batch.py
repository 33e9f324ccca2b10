"""Transactional batch execution against a shared workspace."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, List

from . import types
from .injector import Injector
from .verifier import Verifier, WorkspaceError


@dataclass
class Workspace:
    """The mutable workspace: how to edit it, how to verify it, and its lock.

    Only one inject/verify/revert cycle may hold ``lock`` at a time.
    """

    injector: Injector
    verifier: Verifier
    lock: threading.Lock = field(default_factory=threading.Lock)


@dataclass
class BatchResult:
    ok: bool
    fixes: List[types.Fix]
    logs: List[str] = field(default_factory=list)


def run_batch(
    workspace: Workspace,
    fixes: Iterable[types.Fix],
    measure: Callable[[List[types.Diagnostic]], None],
    *,
    verifier: Verifier | None = None,
) -> BatchResult:
    """Inject *fixes*, verify, hand the diagnostics to *measure*, then revert.

    *verifier* defaults to the workspace verifier; downstream modules pass
    their own to build a dependent module against the injected target.

    A failed injection, verification or revert is reported in the result
    instead of raised. The fixes are reverted in every case; errors raised
    by *measure* propagate after the revert.
    """

    batch = types.dedupe_fixes(fixes)
    logs: List[str] = []
    with workspace.lock:
        try:
            workspace.injector.inject(batch)
            diagnostics = (verifier or workspace.verifier).run()
        except WorkspaceError as exc:
            logs.append(f"verification failed: {exc}")
            _revert(workspace, batch, logs)
            return BatchResult(False, batch, logs)
        try:
            measure(diagnostics)
        finally:
            reverted = _revert(workspace, batch, logs)
    return BatchResult(reverted, batch, logs)


def _revert(workspace: Workspace, batch: List[types.Fix], logs: List[str]) -> bool:
    try:
        workspace.injector.revert(batch)
    except WorkspaceError as exc:
        logs.append(f"revert failed: {exc}")
        return False
    return True


def verify_baseline(workspace: Workspace) -> List[types.Diagnostic]:
    """Run the verifier on the untouched workspace under the lock."""

    with workspace.lock:
        return workspace.verifier.run()
