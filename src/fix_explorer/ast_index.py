"""AST-based index of the target module used for impact and override queries."""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from . import types


@dataclass
class ModuleIndex:
    """In-memory view of declarations, call sites and class hierarchy."""

    root: Path
    methods: Dict[Tuple[str, str], List[str]] = field(default_factory=dict)
    fields: Set[Tuple[str, str]] = field(default_factory=set)
    bases: Dict[str, List[str]] = field(default_factory=dict)
    paths: Dict[str, str] = field(default_factory=dict)
    _calls: Dict[str, Set[types.Region]] = field(default_factory=dict)
    _reads: Dict[str, Set[types.Region]] = field(default_factory=dict)
    _writes: Dict[str, Set[types.Region]] = field(default_factory=dict)

    def declares(self, location: types.Location) -> bool:
        """True when *location* is declared inside the indexed module."""

        if location.kind == "field":
            return (location.type_name, location.member) in self.fields
        key = (location.type_name, location.callable_name)
        if key not in self.methods:
            return False
        if location.kind == "parameter":
            return 0 <= location.index < len(self.methods[key])
        return True

    def lookup_calls(self, name: str) -> Set[types.Region]:
        return set(self._calls.get(name, set()))

    def lookup_field_uses(self, name: str) -> Set[types.Region]:
        return self._reads.get(name, set()) | self._writes.get(name, set())

    def _resolve(self, simple: str) -> List[str]:
        return [type_name for type_name in self.bases if type_name.rsplit(".", 1)[-1] == simple]

    def supertypes(self, type_name: str) -> Set[str]:
        seen: Set[str] = set()
        pending = [type_name]
        while pending:
            current = pending.pop()
            for base in self.bases.get(current, []):
                for resolved in self._resolve(base):
                    if resolved not in seen:
                        seen.add(resolved)
                        pending.append(resolved)
        return seen

    def subtypes(self, type_name: str) -> Set[str]:
        return {candidate for candidate in self.bases if type_name in self.supertypes(candidate)}

    def overriding(self, location: types.Location) -> Set[types.Location]:
        """Locations in subtypes that override the member at *location*."""

        return self._family_members(location, self.subtypes(location.type_name))

    def override_family(self, location: types.Location) -> Set[types.Location]:
        related = self.subtypes(location.type_name) | self.supertypes(location.type_name)
        return self._family_members(location, related)

    def _family_members(self, location: types.Location, type_names: Iterable[str]) -> Set[types.Location]:
        if location.kind == "field":
            return set()
        found: Set[types.Location] = set()
        for type_name in type_names:
            candidate = types.Location(
                kind=location.kind,
                type_name=type_name,
                member=location.member,
                index=location.index,
                path=self.paths.get(type_name, ""),
            )
            if self.declares(candidate):
                found.add(candidate)
        return found

    def linked_fixes(self, fix: types.Fix, suggested: Optional[Iterable[types.Fix]] = None) -> Set[types.Fix]:
        """Fixes that must be injected together with *fix*.

        Annotating a parameter forces the same annotation on the parameter of
        every overriding method, otherwise the override becomes inconsistent.

        When *suggested* is given, each overriding member is linked through
        the matching checker suggestion (which carries the patch to apply);
        members without one stay unlinked and are left to
        :meth:`is_destructive`.
        """

        linked = {fix}
        if fix.location.kind != "parameter":
            return linked
        known = None if suggested is None else {candidate: candidate for candidate in suggested}
        for location in self.overriding(fix.location):
            member = fix.with_location(location)
            if known is None:
                linked.add(member)
            elif member in known:
                linked.add(known[member])
        return linked

    def is_destructive(self, tree: Iterable[types.Fix]) -> bool:
        """Whether the fix tree leaves an override family inconsistently annotated.

        Heuristic: only direct method/parameter families declared in this
        module are inspected.
        """

        fixes = set(tree)
        for fix in fixes:
            for member in self.override_family(fix.location):
                if fix.with_location(member) not in fixes:
                    return True
        return False


class _ModuleVisitor(ast.NodeVisitor):
    def __init__(self, module: str, rel: str, index: ModuleIndex):
        self.module = module
        self.rel = rel
        self.index = index
        self._classes: List[str] = []
        self._functions: List[str] = []

    def _type_name(self) -> str:
        if self._classes:
            return f"{self.module}.{'.'.join(self._classes)}"
        return self.module

    def _region(self) -> types.Region:
        return types.Region(self._type_name(), self._functions[0] if self._functions else "")

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        if self._functions:
            return
        self._classes.append(node.name)
        type_name = self._type_name()
        self.index.bases[type_name] = [name for name in (self._base_name(base) for base in node.bases) if name]
        self.index.paths[type_name] = self.rel
        for stmt in node.body:
            for target in self._assigned_names(stmt):
                self.index.fields.add((type_name, target))
        self.generic_visit(node)
        self._classes.pop()

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._visit_function(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._visit_function(node)

    def _visit_function(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> None:
        if not self._functions:
            params = [arg.arg for arg in node.args.posonlyargs + node.args.args + node.args.kwonlyargs]
            if self._classes and params and params[0] in ("self", "cls"):
                params = params[1:]
            type_name = self._type_name()
            self.index.methods[(type_name, node.name)] = params
            self.index.paths.setdefault(type_name, self.rel)
        self._functions.append(node.name)
        self.generic_visit(node)
        self._functions.pop()

    def visit_Call(self, node: ast.Call) -> None:
        name = self._call_name(node.func)
        if name:
            self.index._calls.setdefault(name, set()).add(self._region())
        self.generic_visit(node)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        target = self.index._writes if isinstance(node.ctx, ast.Store) else self.index._reads
        target.setdefault(node.attr, set()).add(self._region())
        if (
            isinstance(node.ctx, ast.Store)
            and isinstance(node.value, ast.Name)
            and node.value.id == "self"
            and self._classes
        ):
            self.index.fields.add((self._type_name(), node.attr))
        self.generic_visit(node)

    @staticmethod
    def _assigned_names(stmt: ast.stmt) -> List[str]:
        if isinstance(stmt, ast.Assign):
            return [target.id for target in stmt.targets if isinstance(target, ast.Name)]
        if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
            return [stmt.target.id]
        return []

    @staticmethod
    def _base_name(expr: ast.expr) -> Optional[str]:
        if isinstance(expr, ast.Name):
            return expr.id
        if isinstance(expr, ast.Attribute):
            return expr.attr
        return None

    @staticmethod
    def _call_name(expr: ast.AST) -> str | None:
        if isinstance(expr, ast.Name):
            return expr.id
        if isinstance(expr, ast.Attribute):
            return expr.attr
        return None


def _walk_python_files(repo_path: Path) -> Iterable[Path]:
    for path in sorted(repo_path.rglob("*.py")):
        if path.is_file():
            yield path


def _module_name(rel: Path) -> str:
    parts = list(rel.with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join(parts) or rel.stem


def build_index(repo_path: Path | str) -> ModuleIndex:
    """Build a :class:`ModuleIndex` for every Python file under *repo_path*."""

    root = Path(repo_path)
    index = ModuleIndex(root=root)
    for file_path in _walk_python_files(root):
        rel = file_path.relative_to(root)
        try:
            tree = ast.parse(file_path.read_text())
        except SyntaxError:
            continue
        _ModuleVisitor(_module_name(rel), rel.as_posix(), index).visit(tree)
    return index
