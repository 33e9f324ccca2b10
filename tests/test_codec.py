import json

import pytest

from fix_explorer import codec, types

from conftest import diag, fix

CHECKER_OUTPUT = {
    "diagnostics": [
        {
            "kind": "NULLABLE",
            "message": "returning None from non-nullable method",
            "region": {"type": "pkg.Foo", "member": "get"},
            "fixes": [
                {
                    "location": {"kind": "method", "type": "pkg.Foo", "member": "get", "path": "pkg/foo.py"},
                    "annotation": "Nullable",
                    "reason": "returns None",
                },
                {
                    "location": {"kind": "method", "type": "pkg.Foo", "member": "get"},
                    "annotation": "Nullable",
                    "reason": "returns None on miss",
                    "origin": "downstream",
                },
            ],
        },
        {"kind": "INIT", "message": "field never set", "region": {"type": "pkg.Foo"}},
    ]
}


def test_parse_checker_output():
    first, second = codec.parse_diagnostics(json.dumps(CHECKER_OUTPUT))
    assert first.region == types.Region("pkg.Foo", "get")
    (merged,) = first.fixes
    assert merged == fix("get")
    assert merged.reasons == {"returns None", "returns None on miss"}
    assert merged.originates_in_target
    assert merged.location.path == "pkg/foo.py"
    assert second.region == types.Region("pkg.Foo")
    assert second.fixes == frozenset()


def test_parse_accepts_bare_list_and_empty_output():
    assert codec.parse_diagnostics(json.dumps(CHECKER_OUTPUT["diagnostics"][1:])) == [
        diag(types.Region("pkg.Foo"), "field never set", kind="INIT")
    ]
    assert codec.parse_diagnostics("") == []


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        '"just a string"',
        '[{"message": "no region"}]',
        '[{"region": {"type": "pkg.Foo"}, "fixes": {}}]',
        '[{"region": {"type": "pkg.Foo"}, "fixes": [{"location": {"kind": "parameter", "type": "pkg.Foo", "index": null}, "annotation": "N"}]}]',
        '[{"region": {"type": "pkg.Foo"}, "fixes": [{"location": {"kind": "class", "type": "pkg.Foo"}, "annotation": "N"}]}]',
    ],
)
def test_parse_rejects_malformed_output(text: str):
    with pytest.raises((ValueError, KeyError)):
        codec.parse_diagnostics(text)


def test_diagnostic_dict_round_trip():
    original = diag(types.Region("pkg.Foo", "get"), "boom", fix("get"), fix("put", kind="parameter", index=1))
    assert codec.diagnostic_from_dict(codec.diagnostic_to_dict(original)) == original


def test_report_to_dict_sorts_tree():
    report = types.Report(root=fix("put"), tree={fix("get")}, local_effect=-2, tag=types.Status.APPLY)
    data = codec.report_to_dict(report)
    assert [item["location"]["member"] for item in data["tree"]] == ["get", "put"]
    assert data["tag"] == "apply"
    assert data["local_effect"] == -2
    json.dumps(data)
