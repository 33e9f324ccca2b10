from fix_explorer import bank, types

from conftest import FakeWorkspace, diag, fix

A = types.Region("pkg.Foo", "a")
B = types.Region("pkg.Foo", "b")


def test_compare_reports_signed_delta_and_symmetric_difference():
    kept = diag(A, "kept", fix("a"))
    gone = diag(A, "gone", fix("a"))
    new = diag(B, "new", fix("b"))
    store = bank.Bank()
    store.set_baseline([kept, gone])
    store.save_state([kept, new, diag(B, "new2")])
    result = store.compare()
    assert result.effect == 1
    assert result.removed == {gone}
    assert result.added == {new, diag(B, "new2")}
    assert result.dif == {gone, new, diag(B, "new2")}


def test_compare_by_region_restricts_to_region():
    store = bank.Bank()
    store.set_baseline([diag(A, "x"), diag(A, "y"), diag(B, "z")])
    store.save_state([diag(B, "z"), diag(B, "w")])
    assert store.compare_by_region(A).effect == -2
    assert store.compare_by_region(B).effect == 1
    assert store.compare_by_region(types.Region("pkg.Bar")).effect == 0


def test_save_state_rebase_moves_after_to_before():
    store = bank.Bank()
    first = store.save_state([diag(A, "x")])
    store.save_state([], rebase=True)
    assert store.before is first
    assert store.compare().effect == -1
    store.save_state([diag(A, "x"), diag(A, "y")], rebase=False)
    assert store.before is first
    assert store.compare().effect == 1


def test_comparisons_do_not_mutate_snapshots():
    store = bank.Bank()
    store.set_baseline([diag(A, "x")])
    store.save_state([diag(A, "y")], rebase=False)
    before, after = store.before, store.after
    store.compare()
    store.compare_by_region(A)
    assert store.before is before and store.after is after
    assert bank.compare(before, after) == store.compare()


def test_newly_resolvable_fixes_by_region():
    store = bank.Bank()
    store.set_baseline([diag(A, "x", fix("a"))])
    store.save_state([diag(A, "x", fix("a")), diag(A, "y", fix("c")), diag(B, "z", fix("d"))], rebase=False)
    assert store.compare_fixes_by_region(A) == {fix("c")}
    assert store.after.fixes == {fix("a"), fix("c"), fix("d")}
    assert store.new_diagnostics([A]) == {diag(A, "y", fix("c"))}


def test_inject_then_revert_round_trips_the_snapshot():
    target = fix("a")
    gone = diag(A, "x", target)
    ws = FakeWorkspace([gone, diag(B, "z")], effects={target: ({gone}, [diag(B, "new", fix("b"))])})
    store = bank.Bank()
    store.set_baseline(ws.run())
    ws.inject([target])
    ws.inject([target])
    ws.revert([target])
    ws.revert([target])
    store.save_state(ws.run(), rebase=False)
    result = store.compare()
    assert result.effect == 0
    assert not result.dif
    assert store.after.diagnostics == store.before.diagnostics


def test_added_counts_keep_repeated_occurrences():
    repeated = diag(A, "deref", fix("a"))
    store = bank.Bank()
    store.set_baseline([repeated])
    store.save_state([repeated, repeated, repeated, diag(B, "new")], rebase=False)
    result = store.compare()
    assert result.effect == 3
    assert result.added == {repeated, diag(B, "new")}
    assert store.new_diagnostic_counts() == {repeated: 2, diag(B, "new"): 1}
