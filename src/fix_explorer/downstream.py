"""Estimating the effect of target fixes on dependent modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Sequence, Tuple

from . import batch, logging, types
from .bank import Bank
from .verifier import Verifier, WorkspaceError


@dataclass
class DownstreamModule:
    """A module built against the target; it is verified, never edited."""

    name: str
    verifier: Verifier
    bank: Bank = field(default_factory=Bank)


@dataclass
class Bounds:
    lower: int = 0
    upper: int = 0


Candidate = Tuple[types.Fix, FrozenSet[types.Fix]]


def count_bounds(new_diagnostics: Mapping[types.Diagnostic, int], fixes: FrozenSet[types.Fix]) -> Bounds:
    """Attribute new downstream diagnostics to the fix set under test.

    *new_diagnostics* maps each new diagnostic to how many more times it
    occurs. The lower bound only counts diagnostics whose single resolving
    fix is under test; the upper bound counts every diagnostic one of the
    fixes could resolve.
    """

    bounds = Bounds()
    for diagnostic, count in new_diagnostics.items():
        if not diagnostic.fixes & fixes:
            continue
        bounds.upper += count
        try:
            if diagnostic.resolving_fix() in fixes:
                bounds.lower += count
        except types.AttributionError:
            continue
    return bounds


class DownstreamEstimator:
    """Replays the target batches against every dependent module."""

    def __init__(self, workspace: batch.Workspace, modules: Sequence[DownstreamModule], logger: logging.RunLogger):
        self.workspace = workspace
        self.modules = list(modules)
        self.logger = logger

    def _baseline(self) -> List[DownstreamModule]:
        active: List[DownstreamModule] = []
        for module in self.modules:
            try:
                with self.workspace.lock:
                    module.bank.set_baseline(module.verifier.run())
            except WorkspaceError as exc:
                self.logger.log_event("downstream.failed", module=module.name, error=str(exc), stage="baseline")
                continue
            active.append(module)
        return active

    def estimate(self, groups: Sequence[Sequence[Candidate]]) -> Dict[types.Fix, Bounds]:
        """Return lower/upper bound counts per root fix.

        Roots whose batch failed on a module get no contribution from it.
        """

        bounds: Dict[types.Fix, Bounds] = {root: Bounds() for group in groups for root, _ in group}
        if not self.modules:
            return bounds
        self.logger.log_event("downstream.start", modules=len(self.modules), groups=len(groups))
        active = self._baseline()
        for number, group in enumerate(groups):
            fixes = [fix for _, linked in group for fix in linked]
            for module in active:

                def measure(diagnostics: List[types.Diagnostic], module: DownstreamModule = module) -> None:
                    module.bank.save_state(diagnostics, rebase=False)
                    added = module.bank.new_diagnostic_counts()
                    for root, linked in group:
                        found = count_bounds(added, linked)
                        bounds[root].lower += found.lower
                        bounds[root].upper += found.upper

                result = batch.run_batch(self.workspace, fixes, measure, verifier=module.verifier)
                if not result.ok:
                    self.logger.log_event(
                        "downstream.failed", module=module.name, group=number, error="; ".join(result.logs)
                    )
                    continue
                self.logger.log_event("downstream.module", module=module.name, group=number, size=len(group))
        return bounds
