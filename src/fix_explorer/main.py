"""CLI entrypoint for fix-explorer."""

from __future__ import annotations

import argparse
import json
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Set

from . import ast_index, batch, codec, config as config_module, downstream, explorer, regions, types, vcs
from .injector import GitPatchBackend, TrackingInjector
from .logging import RunLogger
from .verifier import CommandVerifier


def _parse_args(args: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="fix-explorer")
    parser.add_argument("--out", required=True, help="Where to write the JSON reports")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML configuration file (defaults to ./explorer.yaml if omitted)",
    )
    parser.add_argument("--depth", type=int, default=None, help="Override explorer.depth")
    parser.add_argument("--mode", default=None, help="Override explorer.mode")
    parser.add_argument("--run-id", default=None, help="Name of the run directory under logging.dir")
    return parser.parse_args(list(args) if args is not None else None)


def build_context(cfg: config_module.Config, logger: RunLogger) -> explorer.ExplorationContext:
    """Wire the configured verifier, injector and region lookup together."""

    repo = cfg.verifier.workspace
    workspace = batch.Workspace(
        injector=TrackingInjector(GitPatchBackend(repo)),
        verifier=CommandVerifier(
            build_cmd=cfg.verifier.build_cmd,
            workspace=repo,
            diagnostics_path=cfg.verifier.diagnostics_path,
            timeout_sec=cfg.verifier.timeout_sec,
            ok_returncodes=cfg.verifier.ok_returncodes,
        ),
    )
    index = ast_index.build_index(repo)
    lookup = regions.build_lookup(
        index,
        table_path=cfg.regions.table,
        generated_code=cfg.regions.generated_code,
    )
    modules = []
    if cfg.downstream.enabled:
        modules = [
            downstream.DownstreamModule(
                name=module.name,
                verifier=CommandVerifier(
                    build_cmd=module.build_cmd,
                    workspace=module.workspace,
                    diagnostics_path=module.diagnostics_path,
                    timeout_sec=cfg.verifier.timeout_sec,
                    ok_returncodes=cfg.verifier.ok_returncodes,
                ),
            )
            for module in cfg.downstream.modules
        ]
    context = explorer.ExplorationContext(
        workspace=workspace,
        lookup=lookup,
        logger=logger,
        mode=cfg.analysis_mode(),
        depth=cfg.explorer.depth,
        retry_failed_as_singletons=cfg.explorer.retry_failed_as_singletons,
        declared_in_target=index.declares,
        destructive=index.is_destructive,
        downstream=modules,
    )
    if cfg.explorer.link_overrides:
        bank = context.bank

        def link(fix: types.Fix) -> Set[types.Fix]:
            # linked members must be baseline suggestions so they carry a patch
            return index.linked_fixes(fix, suggested=bank.before.fixes)

        context.link = link
    return context


def main(argv: Iterable[str] | None = None) -> None:
    ns = _parse_args(argv)
    cfg = config_module.Config.load(ns.config)
    if ns.depth is not None or ns.mode is not None:
        cfg = replace(
            cfg,
            explorer=replace(
                cfg.explorer,
                depth=cfg.explorer.depth if ns.depth is None else ns.depth,
                mode=cfg.explorer.mode if ns.mode is None else ns.mode,
            ),
        )
    logger = RunLogger(cfg.logging.dir, ns.run_id, stream=cfg.logging.stream)
    context = build_context(cfg, logger)
    repo = cfg.verifier.workspace
    head = vcs.checkpoint(repo)
    before = vcs.working_tree_diff(repo)
    logger.log_event("vcs.checkpoint", head=head)

    result = explorer.DeepExplorer(context).explore()

    if vcs.working_tree_diff(repo) != before:
        # the explorer reverts every batch; a changed tree means an injector leaked edits
        logger.log_event("vcs.dirty", head=head)
    reports = [codec.report_to_dict(report) for report in result.reports]
    Path(ns.out).write_text(json.dumps(reports, indent=2, sort_keys=True))


if __name__ == "__main__":  # pragma: no cover
    main()
