"""Exploration engine: group, inject, verify, measure, revert, decide."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

from . import analysis, batch, codec, logging, regions, types
from .bank import Bank
from .downstream import DownstreamEstimator, DownstreamModule
from .graph import CandidateGraph, Node
from .verifier import WorkspaceError


def _declared_everywhere(location: types.Location) -> bool:
    return True


def _unlinked(fix: types.Fix) -> Set[types.Fix]:
    return {fix}


def _never_destructive(tree: Iterable[types.Fix]) -> bool:
    return False


@dataclass
class ExplorationContext:
    """Everything one exploration run needs, passed explicitly to the engine.

    ``declared_in_target`` decides whether a fix lies in the target module,
    ``link`` expands a fix to the set that must be injected atomically and
    ``destructive`` flags fix trees that break an override family.
    """

    workspace: batch.Workspace
    lookup: regions.RegionSource
    logger: logging.RunLogger
    mode: analysis.AnalysisMode = analysis.AnalysisMode.LOCAL
    depth: int = 5
    retry_failed_as_singletons: bool = True
    declared_in_target: Callable[[types.Location], bool] = _declared_everywhere
    link: Callable[[types.Fix], Set[types.Fix]] = _unlinked
    destructive: Callable[[Iterable[types.Fix]], bool] = _never_destructive
    downstream: Sequence[DownstreamModule] = ()
    bank: Bank = field(default_factory=Bank)


@dataclass
class ExplorationResult:
    reports: List[types.Report]
    builds: int = 0
    failed_groups: int = 0
    depth_reached: int = 0
    depth_exceeded: bool = False


class Explorer:
    """Runs single exploration passes over a candidate graph."""

    def __init__(self, context: ExplorationContext):
        self.context = context
        self.builds = 0
        self.failed_groups = 0
        self.failures: List[Dict[str, object]] = []

    def explore_pass(self, graph: CandidateGraph, depth: int) -> None:
        ctx = self.context
        graph.update_regions(ctx.lookup)
        groups = graph.find_groups()
        ctx.logger.log_event("graph.groups", depth=depth, nodes=len(graph), size=len(groups))
        ctx.logger.log_json(
            f"groups-{depth}",
            [[str(node.root) for node in graph.group_nodes(group)] for group in groups],
        )
        for number, group in enumerate(groups):
            self._run_group(graph, group, depth, number, retry=ctx.retry_failed_as_singletons)

    def _measure(self, graph: CandidateGraph, group: List[int]) -> Callable[[List[types.Diagnostic]], None]:
        ctx = self.context

        def measure(diagnostics: List[types.Diagnostic]) -> None:
            graph.check_group(group)
            ctx.bank.save_state(diagnostics, rebase=False)
            for node in graph.group_nodes(group):
                effect = 0
                added: Set[types.Diagnostic] = set()
                triggered: Set[types.Fix] = set()
                for region in node.regions:
                    result = ctx.bank.compare_by_region(region)
                    effect += result.effect
                    added |= result.added
                    triggered |= ctx.bank.compare_fixes_by_region(region)
                node.effect = effect
                node.new_diagnostics = added
                node.triggered = {
                    fix for fix in triggered if fix not in node.fixes and ctx.declared_in_target(fix.location)
                }

        return measure

    def _run_group(self, graph: CandidateGraph, group: List[int], depth: int, number: int, *, retry: bool) -> None:
        ctx = self.context
        nodes = graph.group_nodes(group)
        fixes = [fix for node in nodes for fix in node.fixes]
        ctx.logger.log_event("batch.start", depth=depth, group=number, size=len(nodes), fixes=len(fixes))
        self.builds += 1
        result = batch.run_batch(ctx.workspace, fixes, self._measure(graph, group))
        if result.ok:
            ctx.logger.log_event(
                "batch.result",
                depth=depth,
                group=number,
                effects={str(node.root): node.effect for node in nodes},
            )
            return
        self.failed_groups += 1
        self.failures.append(
            {"depth": depth, "group": number, "roots": [str(node.root) for node in nodes], "logs": result.logs}
        )
        for node in nodes:
            node.mark_failed()
        ctx.logger.log_event(
            "batch.failed", depth=depth, group=number, size=len(nodes), error="; ".join(result.logs)
        )
        if retry and len(nodes) > 1:
            ctx.logger.log_event("batch.retry", depth=depth, group=number, size=len(nodes))
            for node in nodes:
                node.failed = False
                self._run_group(graph, [node.index], depth, number, retry=False)


class DeepExplorer(Explorer):
    """Explores root fixes, then follow-up fixes level by level up to ``depth``."""

    def __init__(self, context: ExplorationContext):
        super().__init__(context)
        self.reports: Dict[types.Fix, types.Report] = {}

    def _roots(self, fixes: Optional[Iterable[types.Fix]]) -> List[types.Fix]:
        ctx = self.context
        if fixes is not None:
            return types.dedupe_fixes(fixes)
        candidates: List[types.Fix] = []
        for diagnostic in ctx.bank.before.diagnostics:
            if diagnostic.fixable_on_target(ctx.declared_in_target):
                candidates.extend(sorted(diagnostic.fixes, key=lambda fix: fix.location))
        return types.dedupe_fixes(candidates)

    def _settled(self) -> Set[types.Fix]:
        return {fix for report in self.reports.values() if report.finished for fix in report.tree}

    def _followups(self, report: types.Report, settled: Set[types.Fix]) -> Set[types.Fix]:
        return report.pending_followups() - settled

    def _fold(self, graph: CandidateGraph, depth: int) -> None:
        for node in graph.nodes:
            report = self.reports[node.root]
            if node.failed:
                if depth == 0:
                    report.failed = True
                # keep the last good measurement and stop following this tree
                report.triggered = set()
                continue
            report.tree = set(node.fixes)
            report.local_effect = node.effect or 0
            report.depth = depth
            report.triggered = set(node.triggered)
            report.new_diagnostics = set(node.new_diagnostics)

    def _decide(self, *, final: bool) -> None:
        ctx = self.context
        settled = self._settled()

        def destructive(report: types.Report) -> bool:
            return ctx.destructive(report.tree)

        for report in self.reports.values():
            if report.finished:
                continue
            tag = analysis.decide(ctx.mode, report, destructive)
            if final or tag is types.Status.APPLY or not self._followups(report, settled):
                report.tag = tag
                ctx.logger.log_event("analysis.tag", root=str(report.root), effect=report.local_effect, tag=tag.value)

    def _estimate_downstream(self, graph: CandidateGraph) -> None:
        ctx = self.context
        groups = [
            [(node.root, node.fixes) for node in graph.group_nodes(group) if not node.failed]
            for group in graph.groups
        ]
        estimator = DownstreamEstimator(ctx.workspace, ctx.downstream, ctx.logger)
        for root, bounds in estimator.estimate([group for group in groups if group]).items():
            report = self.reports[root]
            report.lower_bound_downstream_effect = bounds.lower
            report.upper_bound_downstream_effect = bounds.upper

    def _result(self, depth_reached: int, depth_exceeded: bool) -> ExplorationResult:
        ctx = self.context
        reports = list(self.reports.values())
        ctx.logger.log_json("reports", [codec.report_to_dict(report) for report in reports])
        if self.failures:
            ctx.logger.log_json("failures", self.failures)
        ctx.logger.log_event(
            "explorer.finish",
            reports=len(reports),
            applied=sum(1 for report in reports if report.tag is types.Status.APPLY),
            builds=self.builds,
            depth=depth_reached,
        )
        return ExplorationResult(
            reports=reports,
            builds=self.builds,
            failed_groups=self.failed_groups,
            depth_reached=depth_reached,
            depth_exceeded=depth_exceeded,
        )

    def explore(self, fixes: Optional[Iterable[types.Fix]] = None) -> ExplorationResult:
        """Explore *fixes*, or every fixable candidate of the baseline when omitted."""

        ctx = self.context
        ctx.logger.log_event("explorer.start", depth=ctx.depth, mode=ctx.mode.value)
        self.reports = {}
        try:
            self.builds += 1
            baseline = batch.verify_baseline(ctx.workspace)
        except WorkspaceError as exc:
            ctx.logger.log_event("explorer.baseline", ok=False, error=str(exc))
            for root in types.dedupe_fixes(fixes or ()):
                self.reports[root] = types.Report(root=root, failed=True, tag=types.Status.DISCARD)
            return self._result(0, False)
        ctx.bank.set_baseline(baseline)
        ctx.logger.log_event("explorer.baseline", ok=True, diagnostics=len(baseline))

        graph = CandidateGraph()
        for root in self._roots(fixes):
            node = graph.find_or_create(root, ctx.link(root))
            self.reports[root] = types.Report(root=root, tree=set(node.fixes))
        ctx.logger.log_event("explorer.level", depth=0, size=len(graph))
        if not len(graph):
            return self._result(0, False)
        self.explore_pass(graph, 0)
        self._fold(graph, 0)
        if ctx.downstream:
            self._estimate_downstream(graph)
        self._decide(final=ctx.depth == 0)

        depth_reached = 0
        for depth in range(1, ctx.depth + 1):
            settled = self._settled()
            graph = CandidateGraph()
            for report in self.reports.values():
                if report.finished:
                    continue
                followups = self._followups(report, settled)
                if not followups:
                    continue
                linked = {linked for fix in followups for linked in ctx.link(fix)}
                graph.find_or_create(report.root, report.tree | linked)
            if not len(graph):
                break
            ctx.logger.log_event("explorer.level", depth=depth, size=len(graph))
            depth_reached = depth
            self.explore_pass(graph, depth)
            self._fold(graph, depth)
            self._decide(final=False)

        settled = self._settled()
        leftover = [report for report in self.reports.values() if not report.finished and self._followups(report, settled)]
        depth_exceeded = bool(leftover) and ctx.depth > 0
        if depth_exceeded:
            ctx.logger.log_event(
                "explorer.depth_exceeded",
                depth=ctx.depth,
                reports=len(leftover),
                followups=sum(len(self._followups(report, settled)) for report in leftover),
            )
        self._decide(final=True)
        return self._result(depth_reached, depth_exceeded)
