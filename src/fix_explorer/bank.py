"""Diagnostic snapshots and the before/after comparisons built on them."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Set, Tuple

from .types import Diagnostic, Fix, Region


@dataclass(frozen=True)
class Snapshot:
    """Immutable view of one verifier run, indexed by region."""

    diagnostics: Tuple[Diagnostic, ...] = ()
    by_region: Mapping[Region, Tuple[Diagnostic, ...]] = field(default_factory=dict, repr=False)

    @classmethod
    def of(cls, diagnostics: Iterable[Diagnostic]) -> "Snapshot":
        ordered = tuple(diagnostics)
        grouped: Dict[Region, list] = {}
        for diagnostic in ordered:
            grouped.setdefault(diagnostic.region, []).append(diagnostic)
        return cls(ordered, {region: tuple(items) for region, items in grouped.items()})

    def in_region(self, region: Region) -> Tuple[Diagnostic, ...]:
        return self.by_region.get(region, ())

    @property
    def fixes(self) -> FrozenSet[Fix]:
        """Every fix that resolves at least one diagnostic in the snapshot."""

        return frozenset(fix for diagnostic in self.diagnostics for fix in diagnostic.fixes)

    def fixes_in_region(self, region: Region) -> FrozenSet[Fix]:
        return frozenset(fix for diagnostic in self.in_region(region) for fix in diagnostic.fixes)


@dataclass(frozen=True)
class Result:
    """Outcome of comparing two snapshots.

    ``effect`` is the signed count delta (after - before); ``added`` and
    ``removed`` split the symmetric difference by direction.
    ``added_counts`` keeps how many more times each added diagnostic occurs.
    """

    effect: int
    added: FrozenSet[Diagnostic]
    removed: FrozenSet[Diagnostic]
    added_counts: Mapping[Diagnostic, int] = field(default_factory=Counter, compare=False)

    @property
    def dif(self) -> FrozenSet[Diagnostic]:
        return self.added | self.removed


def _diff(before: Tuple[Diagnostic, ...], after: Tuple[Diagnostic, ...]) -> Result:
    before_counts = Counter(before)
    after_counts = Counter(after)
    added = after_counts - before_counts
    return Result(
        effect=len(after) - len(before),
        added=frozenset(added),
        removed=frozenset(before_counts - after_counts),
        added_counts=added,
    )


def compare(before: Snapshot, after: Snapshot) -> Result:
    return _diff(before.diagnostics, after.diagnostics)


def compare_by_region(before: Snapshot, after: Snapshot, region: Region) -> Result:
    return _diff(before.in_region(region), after.in_region(region))


def compare_fixes_by_region(before: Snapshot, after: Snapshot, region: Region) -> Set[Fix]:
    """Fixes that became resolvable in *region* between the two snapshots."""

    return set(after.fixes_in_region(region) - before.fixes_in_region(region))


class Bank:
    """Holds the "before" and "after" snapshots of a workspace.

    ``save_state`` only replaces snapshots; every comparison is a read over
    the two current values.
    """

    def __init__(self) -> None:
        self._before: Snapshot = Snapshot()
        self._after: Snapshot = Snapshot()

    @property
    def before(self) -> Snapshot:
        return self._before

    @property
    def after(self) -> Snapshot:
        return self._after

    def save_state(self, diagnostics: Iterable[Diagnostic], *, rebase: bool = True) -> Snapshot:
        """Store a new "after" snapshot.

        With ``rebase`` the previous "after" becomes "before". Without it the
        current "before" is kept, which is how every batch in a pass is
        measured against the same baseline.
        """

        snapshot = Snapshot.of(diagnostics)
        if rebase:
            self._before = self._after
        self._after = snapshot
        return snapshot

    def set_baseline(self, diagnostics: Iterable[Diagnostic]) -> Snapshot:
        snapshot = Snapshot.of(diagnostics)
        self._before = snapshot
        self._after = snapshot
        return snapshot

    def compare(self) -> Result:
        return compare(self._before, self._after)

    def compare_by_region(self, region: Region) -> Result:
        return compare_by_region(self._before, self._after, region)

    def compare_fixes_by_region(self, region: Region) -> Set[Fix]:
        return compare_fixes_by_region(self._before, self._after, region)

    def new_diagnostics(self, regions: Optional[Iterable[Region]] = None) -> Set[Diagnostic]:
        """Diagnostics present after but not before, optionally limited to *regions*."""

        if regions is None:
            return set(self.compare().added)
        found: Set[Diagnostic] = set()
        for region in regions:
            found |= self.compare_by_region(region).added
        return found

    def new_diagnostic_counts(self) -> Counter:
        """Like :meth:`new_diagnostics`, counting each extra occurrence."""

        return Counter(self.compare().added_counts)
