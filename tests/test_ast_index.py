from pathlib import Path

import pytest

from fix_explorer import ast_index, types

SHAPES = '''\
class Shape:
    label = "shape"

    def area(self, scale):
        return 0

    def describe(self):
        return self.label


class Square(Shape):
    def __init__(self, side):
        self.side = side

    def area(self, scale):
        return self.side * scale


def total(shapes):
    return sum(shape.area(1) for shape in shapes)


def show(shape):
    return shape.describe()
'''


@pytest.fixture()
def sample_repo(tmp_path: Path) -> Path:
    repo = tmp_path / "proj"
    repo.mkdir()
    (repo / "shapes.py").write_text(SHAPES)
    (repo / "broken.py").write_text("def oops(:\n")
    return repo


def _method(type_name: str, member: str) -> types.Location:
    return types.Location("method", f"shapes.{type_name}" if type_name else "shapes", member)


def _param(type_name: str, member: str, index: int) -> types.Location:
    return types.Location("parameter", f"shapes.{type_name}", member, index)


def test_build_index_collects_declarations(sample_repo: Path):
    index = ast_index.build_index(sample_repo)
    assert index.methods[("shapes.Shape", "area")] == ["scale"]
    assert index.methods[("shapes.Square", "__init__")] == ["side"]
    assert index.methods[("shapes", "total")] == ["shapes"]
    assert ("shapes.Shape", "label") in index.fields
    assert ("shapes.Square", "side") in index.fields
    assert index.paths["shapes.Square"] == "shapes.py"
    assert index.declares(_param("Shape", "area", 0))
    assert not index.declares(_param("Shape", "area", 1))
    assert not index.declares(_method("Circle", "area"))


def test_call_and_field_use_regions(sample_repo: Path):
    index = ast_index.build_index(sample_repo)
    assert index.lookup_calls("area") == {types.Region("shapes", "total")}
    assert index.lookup_field_uses("side") == {
        types.Region("shapes.Square", "__init__"),
        types.Region("shapes.Square", "area"),
    }
    assert index.lookup_calls("missing") == set()


def test_class_hierarchy(sample_repo: Path):
    index = ast_index.build_index(sample_repo)
    assert index.supertypes("shapes.Square") == {"shapes.Shape"}
    assert index.subtypes("shapes.Shape") == {"shapes.Square"}
    assert index.overriding(_method("Shape", "area")) == {_method("Square", "area")}
    assert index.override_family(_method("Square", "area")) == {_method("Shape", "area")}
    assert index.overriding(_method("Shape", "describe")) == set()


def test_parameter_fixes_are_linked_to_overrides(sample_repo: Path):
    index = ast_index.build_index(sample_repo)
    base = types.Fix(_param("Shape", "area", 0), "Nullable")
    assert index.linked_fixes(base) == {base, base.with_location(_param("Square", "area", 0))}
    returned = types.Fix(_method("Shape", "area"), "Nullable")
    assert index.linked_fixes(returned) == {returned}


def test_destructive_trees_break_override_families(sample_repo: Path):
    index = ast_index.build_index(sample_repo)
    base = types.Fix(_method("Shape", "area"), "Nullable")
    override = base.with_location(_method("Square", "area"))
    assert index.is_destructive([base])
    assert not index.is_destructive([base, override])
    assert not index.is_destructive([types.Fix(_method("Shape", "describe"), "Nullable")])


def test_members_with_signatures_match_their_family(sample_repo: Path):
    index = ast_index.build_index(sample_repo)
    base = types.Fix(types.Location("parameter", "shapes.Shape", "area(scale)", 0), "Nullable")
    override = base.with_location(types.Location("parameter", "shapes.Square", "area(scale)", 0))
    assert index.linked_fixes(base) == {base, override}
    assert not index.is_destructive([base, override])
    assert index.is_destructive([base])
