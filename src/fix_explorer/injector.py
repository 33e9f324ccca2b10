"""Injecting and reverting fixes in the workspace."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Protocol, Set

from . import types, vcs
from .verifier import WorkspaceError


class Injector(Protocol):
    def inject(self, fixes: Iterable[types.Fix]) -> None:  # pragma: no cover - protocol
        ...

    def revert(self, fixes: Iterable[types.Fix]) -> None:  # pragma: no cover - protocol
        ...


class Backend(Protocol):
    def apply(self, fix: types.Fix) -> None:  # pragma: no cover - protocol
        ...

    def remove(self, fix: types.Fix) -> None:  # pragma: no cover - protocol
        ...


class TrackingInjector:
    """Makes a backend idempotent by remembering which fixes are in the workspace.

    Injecting an already injected fix and reverting a fix that is not
    injected are both no-ops.
    """

    def __init__(self, backend: Backend):
        self.backend = backend
        self._injected: Set[types.Fix] = set()

    @property
    def injected(self) -> Set[types.Fix]:
        return set(self._injected)

    def inject(self, fixes: Iterable[types.Fix]) -> None:
        for fix in types.dedupe_fixes(fixes):
            if fix in self._injected:
                continue
            self.backend.apply(fix)
            self._injected.add(fix)

    def revert(self, fixes: Iterable[types.Fix]) -> None:
        """Remove every given fix; failures are collected and raised once at the end."""

        errors: List[str] = []
        for fix in types.dedupe_fixes(fixes):
            if fix not in self._injected:
                continue
            try:
                self.backend.remove(fix)
            except WorkspaceError as exc:
                errors.append(str(exc))
                continue
            self._injected.discard(fix)
        if errors:
            raise WorkspaceError("; ".join(errors))


@dataclass
class GitPatchBackend:
    """Applies the unified diff carried by each fix to a git working tree."""

    repo_path: str

    def _patch(self, fix: types.Fix) -> str:
        if not fix.patch:
            raise WorkspaceError(f"{fix} carries no patch to apply")
        return fix.patch

    def apply(self, fix: types.Fix) -> None:
        patch = self._patch(fix)
        if vcs.is_applied(patch, self.repo_path):
            return
        try:
            vcs.apply_diff(patch, self.repo_path)
        except RuntimeError as exc:
            raise WorkspaceError(f"could not inject {fix}: {exc}") from exc

    def remove(self, fix: types.Fix) -> None:
        patch = self._patch(fix)
        if not vcs.is_applied(patch, self.repo_path):
            return
        try:
            vcs.reverse_diff(patch, self.repo_path)
        except RuntimeError as exc:
            raise WorkspaceError(f"could not revert {fix}: {exc}") from exc
