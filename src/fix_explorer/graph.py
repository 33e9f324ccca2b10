"""Candidate graph: conflict detection and batch partitioning."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Set

from . import regions as regions_module, types


class ConflictInvariantViolation(AssertionError):
    """Two nodes placed in the same group share an impacted region."""


@dataclass
class Node:
    """One root fix (plus its linked fixes) explored within a pass.

    Nodes live in the graph's arena and refer to each other by index only.
    """

    index: int
    root: types.Fix
    fixes: FrozenSet[types.Fix]
    regions: FrozenSet[types.Region] = frozenset()
    effect: Optional[int] = None
    status: types.Status = types.Status.PENDING
    failed: bool = False
    new_diagnostics: Set[types.Diagnostic] = field(default_factory=set)
    triggered: Set[types.Fix] = field(default_factory=set)
    conflicts: Set[int] = field(default_factory=set)

    def mark_failed(self) -> None:
        self.failed = True
        self.effect = None
        self.new_diagnostics.clear()
        self.triggered.clear()


class CandidateGraph:
    """Ephemeral graph over the pending nodes of one exploration pass."""

    def __init__(self) -> None:
        self.nodes: List[Node] = []
        self._by_root: Dict[types.Fix, int] = {}
        self.groups: List[List[int]] = []

    def __len__(self) -> int:
        return len(self.nodes)

    def find_or_create(self, root: types.Fix, fixes: Iterable[types.Fix] = ()) -> Node:
        index = self._by_root.get(root)
        if index is not None:
            node = self.nodes[index]
            node.fixes = node.fixes | frozenset(fixes)
            return node
        node = Node(index=len(self.nodes), root=root, fixes=frozenset({root, *fixes}))
        self.nodes.append(node)
        self._by_root[root] = node.index
        return node

    def pending(self) -> List[Node]:
        return [node for node in self.nodes if node.status is types.Status.PENDING]

    def update_regions(self, lookup: regions_module.RegionSource) -> None:
        """Query impacted regions for every node and rebuild the conflict relation."""

        for node in self.nodes:
            node.regions = frozenset(regions_module.regions_of(lookup, node.fixes))
            node.conflicts.clear()
        owners: Dict[types.Region, List[int]] = {}
        for node in self.nodes:
            for region in node.regions:
                owners.setdefault(region, []).append(node.index)
        for indices in owners.values():
            for index in indices:
                self.nodes[index].conflicts.update(other for other in indices if other != index)

    def find_groups(self) -> List[List[int]]:
        """Greedy colouring of the pending nodes.

        Nodes are visited in arena (insertion) order and placed in the first
        group holding no conflicting member; otherwise a new group opens.
        """

        groups: List[List[int]] = []
        members: List[Set[int]] = []
        for node in self.pending():
            for group, taken in zip(groups, members):
                if not (node.conflicts & taken):
                    group.append(node.index)
                    taken.add(node.index)
                    break
            else:
                groups.append([node.index])
                members.append({node.index})
        self.groups = groups
        return groups

    def group_nodes(self, group: Iterable[int]) -> List[Node]:
        return [self.nodes[index] for index in group]

    def check_group(self, group: Iterable[int]) -> None:
        """Raise when two nodes in *group* share a region."""

        seen: Dict[types.Region, int] = {}
        for node in self.group_nodes(group):
            for region in node.regions:
                other = seen.setdefault(region, node.index)
                if other != node.index:
                    raise ConflictInvariantViolation(
                        f"{self.nodes[other].root} and {node.root} share region {region} in one batch"
                    )
