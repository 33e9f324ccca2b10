"""Configuration loading helpers for fix-explorer."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

from . import analysis


def _filter_kwargs(data: Dict[str, Any], *, allowed: set[str]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if key in allowed}


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{name}' must be a mapping.")
    return value


@dataclass(frozen=True)
class ExplorerConfig:
    depth: int = 5
    mode: str | None = None
    retry_failed_as_singletons: bool = True
    link_overrides: bool = True


@dataclass(frozen=True)
class VerifierConfig:
    build_cmd: str = ""
    workspace: str = "."
    diagnostics_path: str = "diagnostics.json"
    timeout_sec: float | None = None
    ok_returncodes: Tuple[int, ...] = (0,)


@dataclass(frozen=True)
class ModuleConfig:
    name: str
    workspace: str
    build_cmd: str
    diagnostics_path: str = "diagnostics.json"


@dataclass(frozen=True)
class DownstreamConfig:
    enabled: bool = False
    modules: Tuple[ModuleConfig, ...] = ()


@dataclass(frozen=True)
class RegionsConfig:
    table: str | None = None
    generated_code: Tuple[str, ...] = ()


@dataclass(frozen=True)
class LoggingConfig:
    dir: str = ".explorer_runs"
    stream: bool = False


@dataclass(frozen=True)
class Config:
    """Aggregated configuration for an exploration run."""

    explorer: ExplorerConfig = field(default_factory=ExplorerConfig)
    verifier: VerifierConfig = field(default_factory=VerifierConfig)
    downstream: DownstreamConfig = field(default_factory=DownstreamConfig)
    regions: RegionsConfig = field(default_factory=RegionsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def default(cls) -> "Config":
        return cls()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        explorer_cfg = ExplorerConfig(
            **_filter_kwargs(_section(data, "explorer"), allowed=set(ExplorerConfig.__annotations__.keys()))
        )
        if explorer_cfg.depth < 0:
            raise ValueError("explorer.depth must be >= 0.")
        raw_verifier = _filter_kwargs(_section(data, "verifier"), allowed=set(VerifierConfig.__annotations__.keys()))
        if "ok_returncodes" in raw_verifier:
            raw_verifier["ok_returncodes"] = tuple(int(code) for code in raw_verifier["ok_returncodes"])
        verifier_cfg = VerifierConfig(**raw_verifier)
        raw_downstream = _section(data, "downstream")
        modules = tuple(
            ModuleConfig(**_filter_kwargs(raw, allowed=set(ModuleConfig.__annotations__.keys())))
            for raw in raw_downstream.get("modules", []) or []
        )
        downstream_cfg = DownstreamConfig(enabled=bool(raw_downstream.get("enabled", False)), modules=modules)
        raw_regions = _section(data, "regions")
        regions_cfg = RegionsConfig(
            table=raw_regions.get("table"),
            generated_code=tuple(raw_regions.get("generated_code", []) or []),
        )
        logging_cfg = LoggingConfig(
            **_filter_kwargs(_section(data, "logging"), allowed=set(LoggingConfig.__annotations__.keys()))
        )
        return cls(
            explorer=explorer_cfg,
            verifier=verifier_cfg,
            downstream=downstream_cfg,
            regions=regions_cfg,
            logging=logging_cfg,
        )

    @classmethod
    def load(cls, path: str | Path | None = None) -> "Config":
        """Load configuration from *path* if it exists, otherwise defaults."""

        if path is None:
            path = Path("explorer.yaml")
        else:
            path = Path(path)
        if not path.exists():
            return cls.default()
        raw = yaml.safe_load(path.read_text()) or {}
        if not isinstance(raw, dict):
            raise ValueError("Config file must contain a mapping at the top level.")
        return cls.from_dict(raw)

    def analysis_mode(self) -> analysis.AnalysisMode:
        return analysis.parse_mode(self.downstream.enabled, self.explorer.mode)


__all__ = [
    "Config",
    "DownstreamConfig",
    "ExplorerConfig",
    "LoggingConfig",
    "ModuleConfig",
    "RegionsConfig",
    "VerifierConfig",
]
