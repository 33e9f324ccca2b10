"""Decision policies turning measured effects into APPLY/DISCARD tags."""

from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, Optional

from .types import Report, Status

DestructiveCheck = Callable[[Report], bool]


class AnalysisMode(str, Enum):
    """Which effects count when deciding a report.

    LOCAL considers the target module only (default without downstream
    analysis). STRICT always applies fixes required by downstream modules
    unless they break an override family. UPPER_BOUND and LOWER_BOUND add
    the inclusive or the unambiguous downstream estimate; LOWER_BOUND is
    the default once downstream analysis is enabled.
    """

    LOCAL = "local"
    STRICT = "strict"
    UPPER_BOUND = "upper_bound"
    LOWER_BOUND = "lower_bound"


def _threshold(effect: int) -> Status:
    # zero net change is accepted
    return Status.APPLY if effect < 1 else Status.DISCARD


def _local(report: Report, destructive: DestructiveCheck) -> Status:
    return _threshold(report.local_effect)


def _strict(report: Report, destructive: DestructiveCheck) -> Status:
    if not report.root.originates_in_target:
        return Status.DISCARD if destructive(report) else Status.APPLY
    return _threshold(report.local_effect)


def _upper_bound(report: Report, destructive: DestructiveCheck) -> Status:
    return _threshold(report.local_effect + report.upper_bound_downstream_effect)


def _lower_bound(report: Report, destructive: DestructiveCheck) -> Status:
    return _threshold(report.local_effect + report.lower_bound_downstream_effect)


_POLICIES: Dict[AnalysisMode, Callable[[Report, DestructiveCheck], Status]] = {
    AnalysisMode.LOCAL: _local,
    AnalysisMode.STRICT: _strict,
    AnalysisMode.UPPER_BOUND: _upper_bound,
    AnalysisMode.LOWER_BOUND: _lower_bound,
}


def never_destructive(report: Report) -> bool:
    return False


def decide(mode: AnalysisMode, report: Report, destructive: DestructiveCheck = never_destructive) -> Status:
    """Tag for *report* under *mode*. Failed reports are always discarded."""

    if report.failed:
        return Status.DISCARD
    return _POLICIES[mode](report, destructive)


def parse_mode(downstream_enabled: bool, mode: Optional[str]) -> AnalysisMode:
    """Resolve the configured mode.

    Without downstream analysis only LOCAL makes sense. With it, a missing
    value or ``default`` selects LOWER_BOUND.
    """

    if not downstream_enabled:
        return AnalysisMode.LOCAL
    if not mode:
        return AnalysisMode.LOWER_BOUND
    value = mode.strip().lower()
    if value == "default":
        return AnalysisMode.LOWER_BOUND
    try:
        return AnalysisMode(value)
    except ValueError:
        raise ValueError(
            f"Unrecognized mode request: {mode}. Can only be [default|local|upper_bound|lower_bound|strict]."
        ) from None
