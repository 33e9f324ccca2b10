"""Impacted-region lookup.

A lookup answers "which regions may see different diagnostics if this
location's annotation changes". Sources are queried in order and unioned,
then every extension may add regions synthesised by generated code.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Set

from . import ast_index, codec, types


class RegionSource(Protocol):
    def impacted_regions(self, location: types.Location) -> Optional[Set[types.Region]]:  # pragma: no cover - protocol
        ...


class RegionExtension(Protocol):
    def extend(self, regions: Set[types.Region]) -> Set[types.Region]:  # pragma: no cover - protocol
        ...


class OwnRegionSource:
    """The region the location is declared in."""

    def impacted_regions(self, location: types.Location) -> Optional[Set[types.Region]]:
        return {location.region()}


@dataclass
class TableRegionSource:
    """Precomputed location → regions table, e.g. produced by a scanner."""

    table: Mapping[types.Location, Set[types.Region]]

    def impacted_regions(self, location: types.Location) -> Optional[Set[types.Region]]:
        regions = self.table.get(location)
        return set(regions) if regions is not None else None

    @classmethod
    def load(cls, path: str | Path) -> "TableRegionSource":
        """Load ``[{"location": {...}, "regions": [{...}]}]`` from *path*."""

        raw = json.loads(Path(path).read_text())
        if not isinstance(raw, list):
            raise ValueError("Region table must be a JSON array.")
        table: Dict[types.Location, Set[types.Region]] = {}
        for entry in raw:
            location = codec.location_from_dict(entry["location"])
            table.setdefault(location, set()).update(
                codec.region_from_dict(region) for region in entry.get("regions", [])
            )
        return cls(table)


@dataclass
class IndexRegionSource:
    """Call sites, field users and override family members from the module index."""

    index: ast_index.ModuleIndex

    def impacted_regions(self, location: types.Location) -> Optional[Set[types.Region]]:
        if not self.index.declares(location):
            return None
        if location.kind == "field":
            return self.index.lookup_field_uses(location.member)
        regions = self.index.lookup_calls(location.callable_name)
        regions |= {member.region() for member in self.index.override_family(location)}
        return regions


@dataclass
class AccessorExtension:
    """Maps regions of generated accessor members back to their callers.

    ``accessors`` maps the region of a generated member (for example a
    property or a dataclass-generated method) to the name it is called by.
    """

    index: ast_index.ModuleIndex
    accessors: Mapping[types.Region, str] = field(default_factory=dict)

    def extend(self, regions: Set[types.Region]) -> Set[types.Region]:
        extra: Set[types.Region] = set()
        for region in regions:
            name = self.accessors.get(region)
            if name:
                extra |= self.index.lookup_calls(name)
        return extra

    @classmethod
    def from_index(cls, index: ast_index.ModuleIndex) -> "AccessorExtension":
        """Treat every zero-argument method in a class as a potential accessor."""

        accessors = {
            types.Region(type_name, member): member
            for (type_name, member), params in index.methods.items()
            if type_name in index.bases and not params
        }
        return cls(index, accessors)


class CompoundRegionLookup:
    """Ordered union of region sources followed by generated-code extensions."""

    def __init__(self, sources: Sequence[RegionSource], extensions: Sequence[RegionExtension] = ()):
        self.sources: List[RegionSource] = list(sources)
        self.extensions: List[RegionExtension] = list(extensions)

    def impacted_regions(self, location: types.Location) -> Optional[Set[types.Region]]:
        regions: Set[types.Region] = set()
        for source in self.sources:
            found = source.impacted_regions(location)
            if found:
                regions |= found
        for extension in self.extensions:
            regions |= extension.extend(regions)
        return regions


def regions_of(lookup: RegionSource, fixes: Iterable[types.Fix]) -> Set[types.Region]:
    """Union of impacted regions over a linked fix set."""

    regions: Set[types.Region] = set()
    for fix in fixes:
        regions |= lookup.impacted_regions(fix.location) or set()
    return regions


GENERATED_CODE_DETECTORS = ("accessors",)


def build_lookup(
    index: ast_index.ModuleIndex,
    *,
    table_path: str | None = None,
    generated_code: Iterable[str] = (),
) -> CompoundRegionLookup:
    """Assemble the default lookup for a module index."""

    sources: List[RegionSource] = [OwnRegionSource()]
    if table_path:
        sources.append(TableRegionSource.load(table_path))
    sources.append(IndexRegionSource(index))
    extensions: List[RegionExtension] = []
    for detector in generated_code:
        if detector == "accessors":
            extensions.append(AccessorExtension.from_index(index))
        else:
            raise ValueError(
                f"Unknown generated code detector: {detector}. Can only be {list(GENERATED_CODE_DETECTORS)}."
            )
    return CompoundRegionLookup(sources, extensions)
