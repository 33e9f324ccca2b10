import itertools

import pytest

from fix_explorer import graph, types

from conftest import FakeWorkspace, fix, loc


def _region(name: str) -> types.Region:
    return types.Region("pkg.Foo", name)


def _graph_with(regions):
    ws = FakeWorkspace([], regions={loc(name): {_region(r) for r in rs} for name, rs in regions.items()})
    candidates = graph.CandidateGraph()
    for name in regions:
        candidates.find_or_create(fix(name))
    candidates.update_regions(ws)
    return candidates


def test_conflicts_follow_region_overlap():
    candidates = _graph_with({"a": ["x", "y"], "b": ["y"], "c": ["z"]})
    a, b, c = candidates.nodes
    assert a.conflicts == {b.index}
    assert b.conflicts == {a.index}
    assert not c.conflicts


def test_groups_never_share_regions_and_cover_every_pending_node():
    regions = {
        "a": ["r1", "r2"],
        "b": ["r2"],
        "c": ["r3"],
        "d": ["r1", "r3"],
        "e": ["r4"],
        "f": ["r2", "r4"],
        "g": [],
    }
    candidates = _graph_with(regions)
    groups = candidates.find_groups()
    for group in groups:
        for first, second in itertools.combinations(candidates.group_nodes(group), 2):
            assert not (first.regions & second.regions)
        candidates.check_group(group)
    flattened = [index for group in groups for index in group]
    assert sorted(flattened) == [node.index for node in candidates.pending()]
    assert len(flattened) == len(set(flattened))


def test_greedy_assignment_uses_insertion_order():
    candidates = _graph_with({"a": ["x"], "b": ["x"], "c": ["y"], "d": ["x"]})
    assert candidates.find_groups() == [[0, 2], [1], [3]]


def test_only_pending_nodes_are_grouped():
    candidates = _graph_with({"a": ["x"], "b": ["y"]})
    candidates.nodes[0].status = types.Status.APPLY
    assert candidates.find_groups() == [[1]]


def test_linked_fixes_union_their_regions():
    ws = FakeWorkspace([], regions={loc("a"): {_region("x")}, loc("b"): {_region("y")}, loc("c"): {_region("y")}})
    candidates = graph.CandidateGraph()
    linked = candidates.find_or_create(fix("a"), {fix("b")})
    other = candidates.find_or_create(fix("c"))
    assert candidates.find_or_create(fix("a")) is linked
    candidates.update_regions(ws)
    assert linked.regions == {_region("x"), _region("y")}
    assert other.index in linked.conflicts
    assert len(candidates.find_groups()) == 2


def test_check_group_rejects_shared_region():
    candidates = _graph_with({"a": ["x"], "b": ["x"]})
    with pytest.raises(graph.ConflictInvariantViolation):
        candidates.check_group([0, 1])
