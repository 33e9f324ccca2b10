"""Core datatypes for fix-explorer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Set
from typing import Literal

LocationKind = Literal["method", "parameter", "field"]


class AttributionError(ValueError):
    """Raised when a diagnostic cannot be attributed to exactly one fix."""


@dataclass(frozen=True, order=True)
class Region:
    """Enclosing type and member that diagnostics and impact are attributed to.

    An empty ``member`` denotes the type-level region (field initialisers,
    class bodies).
    """

    type_name: str
    member: str = ""

    def __str__(self) -> str:
        return f"{self.type_name}#{self.member}" if self.member else self.type_name


@dataclass(frozen=True, order=True)
class Location:
    """A program element that can host an annotation."""

    kind: LocationKind
    type_name: str
    member: str
    index: int = -1
    path: str = field(default="", compare=False)

    def region(self) -> Region:
        """Region the element itself is declared in."""

        if self.kind == "field":
            return Region(self.type_name)
        return Region(self.type_name, self.member)

    @property
    def callable_name(self) -> str:
        return self.member.split("(", 1)[0]

    @property
    def simple_type_name(self) -> str:
        return self.type_name.rsplit(".", 1)[-1]

    def __str__(self) -> str:
        suffix = f"[{self.index}]" if self.kind == "parameter" else ""
        return f"{self.kind}:{self.type_name}#{self.member}{suffix}"


class Origin(str, Enum):
    """Module whose diagnostic caused a fix to be suggested."""

    TARGET = "target"
    DOWNSTREAM = "downstream"


@dataclass(frozen=True)
class Fix:
    """Suggested annotation at a location.

    Identity is (location, annotation). Reasons, origin and the optional
    patch text are carried along but ignored by equality, so duplicate
    suggestions collapse to one fix via :meth:`merge`.
    """

    location: Location
    annotation: str
    reasons: FrozenSet[str] = field(default_factory=frozenset, compare=False)
    origin: Origin = field(default=Origin.TARGET, compare=False)
    patch: Optional[str] = field(default=None, compare=False, repr=False)

    @property
    def originates_in_target(self) -> bool:
        return self.origin is Origin.TARGET

    def merge(self, other: "Fix") -> "Fix":
        """Union the reasons of two suggestions of the same fix."""

        if other != self:
            raise ValueError(f"cannot merge {other} into {self}")
        origin = Origin.TARGET if Origin.TARGET in (self.origin, other.origin) else Origin.DOWNSTREAM
        return Fix(
            location=self.location,
            annotation=self.annotation,
            reasons=self.reasons | other.reasons,
            origin=origin,
            patch=self.patch if self.patch is not None else other.patch,
        )

    def is_modifying_constructor(self) -> bool:
        if self.location.kind == "field":
            return False
        return self.location.callable_name in ("__init__", self.location.simple_type_name)

    def with_location(self, location: Location) -> "Fix":
        return Fix(location, self.annotation, self.reasons, self.origin)

    def __str__(self) -> str:
        return f"@{self.annotation} on {self.location}"


def dedupe_fixes(fixes: Iterable[Fix]) -> List[Fix]:
    """Collapse equal fixes, keeping first-seen order and merging reasons."""

    merged: Dict[Fix, Fix] = {}
    for fix in fixes:
        if fix in merged:
            merged[fix] = merged[fix].merge(fix)
        else:
            merged[fix] = fix
    return list(merged.values())


@dataclass(frozen=True)
class Diagnostic:
    """An issue reported by the checker, attributed to one region."""

    kind: str
    message: str
    region: Region
    fixes: FrozenSet[Fix] = frozenset()

    @property
    def is_single_fix(self) -> bool:
        return len(self.fixes) == 1

    def resolving_fix(self) -> Fix:
        if not self.is_single_fix:
            raise AttributionError(
                f"{self.kind} in {self.region} has {len(self.fixes)} resolving fixes, expected exactly one"
            )
        return next(iter(self.fixes))

    def fixable_on_target(self, declared_in_target: Callable[[Location], bool]) -> bool:
        """True when the diagnostic is resolvable and every fix lies in the target module."""

        return bool(self.fixes) and all(declared_in_target(fix.location) for fix in self.fixes)

    def __str__(self) -> str:
        return f"{self.kind} in {self.region}: {self.message}"


def resolving_fixes_of(diagnostics: Iterable[Diagnostic]) -> Set[Fix]:
    return {fix for diagnostic in diagnostics for fix in diagnostic.fixes}


class Status(str, Enum):
    """Lifecycle state of a node or report; decided reports are APPLY or DISCARD."""

    PENDING = "pending"
    APPLY = "apply"
    DISCARD = "discard"


@dataclass
class Report:
    """Decision record for one root fix over a full exploration run."""

    root: Fix
    tree: Set[Fix] = field(default_factory=set)
    local_effect: int = 0
    lower_bound_downstream_effect: int = 0
    upper_bound_downstream_effect: int = 0
    tag: Status = Status.PENDING
    depth: int = 0
    failed: bool = False
    triggered: Set[Fix] = field(default_factory=set)
    new_diagnostics: Set[Diagnostic] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.tree.add(self.root)

    @property
    def finished(self) -> bool:
        return self.tag is not Status.PENDING

    def pending_followups(self) -> Set[Fix]:
        return self.triggered - self.tree
