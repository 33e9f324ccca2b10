"""Run records for the exploration engine.

Every exploration run gets ``<dir>/<run_id>/`` holding ``events.ndjson``
(one record per engine event) and JSON artefacts: ``groups-<depth>.json``
per level, ``reports.json`` at the end and ``failures.json`` when a batch
failed. ``RunLogger.counts`` tallies events per kind.
"""

from __future__ import annotations

import json
import os
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

_ECHO_FIELDS = ("depth", "group", "size", "effect", "tag", "module", "mode", "builds", "applied", "error")


def _truthy(val: str | None) -> bool:
    return (val or "").strip().lower() in {"1", "true", "yes", "on", "enable", "enabled"}


class RunLogger:
    """Persist structured artefacts for a single exploration run."""

    def __init__(self, base_dir: str | Path = ".explorer_runs", run_id: str | None = None, *, stream: bool | None = None):
        self.base_dir = Path(base_dir)
        if run_id is None:
            run_id = time.strftime("%Y%m%d-%H%M%S")
        self.run_id = run_id
        self.run_dir = self.base_dir / run_id
        self.run_dir.mkdir(parents=True, exist_ok=True)
        if stream is None:
            stream = _truthy(os.environ.get("FIX_EXPLORER_LOG_STREAM"))
        self._stream = bool(stream)
        self._events_path = self.run_dir / "events.ndjson"
        self.counts: dict[str, int] = {}

    def path_for(self, name: str, suffix: str) -> Path:
        return self.run_dir / f"{name}.{suffix}"

    def log_json(self, name: str, data: Any) -> Path:
        path = self.path_for(name, "json")
        path.write_text(json.dumps(data, indent=2, sort_keys=True, default=str))
        self.log_event("file.write", name=name, path=str(path))
        return path

    def log_text(self, name: str, text: str) -> Path:
        path = self.path_for(name, "txt")
        path.write_text(text)
        self.log_event("file.write", name=name, path=str(path))
        return path

    def log_event(self, kind: str, /, **data: Any) -> None:
        """Append a structured event to events.ndjson and optionally echo it to stdout."""
        now = datetime.now(timezone.utc)
        record = {
            "ts": now.timestamp(),
            "ts_iso": now.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "run": self.run_id,
            "kind": kind,
            "data": data,
        }
        self.counts[kind] = self.counts.get(kind, 0) + 1
        with self._events_path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(record, separators=(",", ":"), default=str) + "\n")
        if self._stream:
            msg = f"[{record['ts_iso']}] {kind} "
            for key in _ECHO_FIELDS:
                if key in data:
                    msg += f"{key}={data[key]} "
            print(msg.strip(), file=sys.stdout, flush=True)
