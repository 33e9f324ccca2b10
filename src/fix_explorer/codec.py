"""JSON (de)serialisation of the core datatypes."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

from . import types

_LOCATION_KINDS = ("method", "parameter", "field")


def region_from_dict(raw: Dict[str, Any]) -> types.Region:
    if not isinstance(raw, dict) or "type" not in raw:
        raise ValueError("Region must be a JSON object with a 'type' field.")
    return types.Region(type_name=str(raw["type"]), member=str(raw.get("member") or ""))


def region_to_dict(region: types.Region) -> Dict[str, Any]:
    return {"type": region.type_name, "member": region.member}


def location_from_dict(raw: Dict[str, Any]) -> types.Location:
    if not isinstance(raw, dict):
        raise ValueError("Location must be a JSON object.")
    kind = raw.get("kind")
    if kind not in _LOCATION_KINDS:
        raise ValueError(f"Location kind must be one of {list(_LOCATION_KINDS)}, got {kind!r}.")
    index = raw.get("index", -1)
    if isinstance(index, bool) or not isinstance(index, int):
        raise ValueError(f"Location index must be an integer, got {index!r}.")
    return types.Location(
        kind=kind,
        type_name=str(raw["type"]),
        member=str(raw.get("member", "")),
        index=index,
        path=str(raw.get("path", "")),
    )


def location_to_dict(location: types.Location) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "kind": location.kind,
        "type": location.type_name,
        "member": location.member,
        "path": location.path,
    }
    if location.kind == "parameter":
        data["index"] = location.index
    return data


def fix_from_dict(raw: Dict[str, Any]) -> types.Fix:
    if not isinstance(raw, dict):
        raise ValueError("Fix must be a JSON object.")
    reasons = raw.get("reasons")
    if reasons is None:
        reasons = [raw["reason"]] if raw.get("reason") else []
    origin = types.Origin(raw.get("origin", types.Origin.TARGET.value))
    return types.Fix(
        location=location_from_dict(raw["location"]),
        annotation=str(raw["annotation"]),
        reasons=frozenset(str(reason) for reason in reasons),
        origin=origin,
        patch=raw.get("patch"),
    )


def fix_to_dict(fix: types.Fix) -> Dict[str, Any]:
    return {
        "location": location_to_dict(fix.location),
        "annotation": fix.annotation,
        "reasons": sorted(fix.reasons),
        "origin": fix.origin.value,
    }


def diagnostic_from_dict(raw: Dict[str, Any]) -> types.Diagnostic:
    if not isinstance(raw, dict):
        raise ValueError("Each diagnostic must be a JSON object.")
    raw_fixes = raw.get("fixes", [])
    if not isinstance(raw_fixes, list):
        raise ValueError("Diagnostic 'fixes' must be a list.")
    return types.Diagnostic(
        kind=str(raw.get("kind", "")),
        message=str(raw.get("message", "")),
        region=region_from_dict(raw["region"]),
        fixes=frozenset(types.dedupe_fixes(fix_from_dict(fix) for fix in raw_fixes)),
    )


def diagnostic_to_dict(diagnostic: types.Diagnostic) -> Dict[str, Any]:
    return {
        "kind": diagnostic.kind,
        "message": diagnostic.message,
        "region": region_to_dict(diagnostic.region),
        "fixes": [fix_to_dict(fix) for fix in sorted(diagnostic.fixes, key=lambda fix: fix.location)],
    }


def parse_diagnostics(text: str) -> List[types.Diagnostic]:
    """Parse checker output: a JSON array or an object with ``diagnostics``."""

    try:
        parsed = json.loads(text or "[]")
    except json.JSONDecodeError as exc:
        raise ValueError(f"Checker returned non-JSON output: {exc}") from exc
    if isinstance(parsed, dict):
        parsed = parsed.get("diagnostics", [])
    if not isinstance(parsed, list):
        raise ValueError("Checker output must be a JSON array of diagnostics.")
    return [diagnostic_from_dict(raw) for raw in parsed]


def load_diagnostics(path: str | Path) -> List[types.Diagnostic]:
    return parse_diagnostics(Path(path).read_text())


def report_to_dict(report: types.Report) -> Dict[str, Any]:
    return {
        "root": fix_to_dict(report.root),
        "tree": [fix_to_dict(fix) for fix in sorted(report.tree, key=lambda fix: fix.location)],
        "local_effect": report.local_effect,
        "lower_bound_downstream_effect": report.lower_bound_downstream_effect,
        "upper_bound_downstream_effect": report.upper_bound_downstream_effect,
        "tag": report.tag.value,
        "depth": report.depth,
        "failed": report.failed,
    }
