from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

import pytest

from fix_explorer import batch, explorer, logging, types
from fix_explorer.verifier import WorkspaceError


def loc(member: str, type_name: str = "pkg.Foo", kind: str = "method", index: int = -1) -> types.Location:
    return types.Location(kind=kind, type_name=type_name, member=member, index=index)


def fix(member: str, annotation: str = "Nullable", **kwargs) -> types.Fix:
    origin = kwargs.pop("origin", types.Origin.TARGET)
    return types.Fix(loc(member, **kwargs), annotation, origin=origin)


def diag(region: types.Region, message: str, *fixes: types.Fix, kind: str = "NULLABLE") -> types.Diagnostic:
    return types.Diagnostic(kind=kind, message=message, region=region, fixes=frozenset(fixes))


class FakeWorkspace:
    """In-memory checker whose diagnostics depend only on the injected fixes.

    ``effects`` maps a fix to (diagnostics it removes, diagnostics it adds).
    Injecting any fix in ``failing`` makes the next run crash.
    """

    def __init__(
        self,
        baseline: Iterable[types.Diagnostic],
        effects: Optional[Dict[types.Fix, Tuple[Set[types.Diagnostic], List[types.Diagnostic]]]] = None,
        regions: Optional[Dict[types.Location, Set[types.Region]]] = None,
        failing: Iterable[types.Fix] = (),
    ):
        self.baseline = list(baseline)
        self.effects = effects or {}
        self.regions = regions or {}
        self.failing = set(failing)
        self.injected: Set[types.Fix] = set()
        self.history: List[Set[types.Fix]] = []
        self.runs = 0

    def inject(self, fixes: Iterable[types.Fix]) -> None:
        self.injected.update(fixes)

    def revert(self, fixes: Iterable[types.Fix]) -> None:
        self.injected.difference_update(fixes)

    def run(self) -> List[types.Diagnostic]:
        self.runs += 1
        self.history.append(set(self.injected))
        if self.injected & self.failing:
            raise WorkspaceError("build crashed")
        removed: Set[types.Diagnostic] = set()
        added: List[types.Diagnostic] = []
        for injected in sorted(self.injected, key=lambda item: item.location):
            gone, new = self.effects.get(injected, (set(), []))
            removed |= gone
            added.extend(new)
        return [d for d in self.baseline if d not in removed] + [d for d in added if d not in removed]

    def impacted_regions(self, location: types.Location) -> Optional[Set[types.Region]]:
        return self.regions.get(location)


class DependentModule:
    """Verifier of a module built against the target workspace's injected fixes."""

    def __init__(self, target: FakeWorkspace, adds: Dict[types.Fix, List[types.Diagnostic]]):
        self.target = target
        self.adds = adds

    def run(self) -> List[types.Diagnostic]:
        found: List[types.Diagnostic] = []
        for injected in self.target.injected:
            found.extend(self.adds.get(injected, []))
        return found


@pytest.fixture()
def run_logger(tmp_path: Path) -> logging.RunLogger:
    return logging.RunLogger(tmp_path / "runs", "test", stream=False)


@pytest.fixture()
def make_context(run_logger: logging.RunLogger):
    def _make(ws: FakeWorkspace, **kwargs) -> explorer.ExplorationContext:
        return explorer.ExplorationContext(
            workspace=batch.Workspace(injector=ws, verifier=ws),
            lookup=ws,
            logger=run_logger,
            **kwargs,
        )

    return _make
