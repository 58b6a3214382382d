"""Main scaffolding orchestrator.

Takes a ``GenerationRequest`` and drives scan -> plan -> apply against the
domains directory configured in ``ScaffoldConfig``.  The only failure the
orchestrator retries is a ``WriteConflict``: the tree is re-scanned, the plan
rebuilt and applied once more; a second conflict becomes
``ConcurrentModification``.
"""

from __future__ import annotations

from cqrs_scaffold.config import ScaffoldConfig
from cqrs_scaffold.errors import ConcurrentModification, WriteConflict
from cqrs_scaffold.models import ApplyReport, GenerationPlan, GenerationRequest

from .emitter import Emitter
from .planner import PlanBuilder
from .scanner import ExistingStructureScanner
from .templates import TemplateRegistry, TemplateRenderer


class ScaffoldGenerator:
    """Generates and merges the artifacts of one CQRS domain.

    Given a ``ScaffoldConfig``, wires together:
    - the template registry (Jinja2 templates per artifact kind)
    - the existing-structure scanner
    - the plan builder
    - the emitter
    """

    def __init__(self, config: ScaffoldConfig | None = None) -> None:
        self.config = config or ScaffoldConfig()
        self.renderer = TemplateRenderer()
        self.registry = TemplateRegistry.from_config(self.config, self.renderer)
        self.scanner = ExistingStructureScanner(self.config.domains_path, self.registry)
        self.planner = PlanBuilder(self.registry, self.config.default_saga_steps)
        self.emitter = Emitter(self.config.domains_path)

    # -- Public API --------------------------------------------------------

    def plan(self, request: GenerationRequest) -> GenerationPlan:
        """Scan the domain and build a plan without writing anything."""
        state = self.scanner.scan(request.domain)
        return self.planner.build(request, state)

    async def run(self, request: GenerationRequest) -> ApplyReport:
        """Scan, plan and apply *request*.

        Returns:
            The report of every applied action.

        Raises:
            ScaffoldInputError: Invalid request; nothing is written.
            DanglingEventReference: Plan rejected; nothing is written.
            ConcurrentModification: A write conflict persisted after one retry.
            MergeAnchorNotFound: An aggregation file needs manual editing.
        """
        plan = self.plan(request)
        try:
            return await self.emitter.apply(plan)
        except WriteConflict as first:
            done = first.report.succeeded if first.report else []

        # Another writer touched the tree since the scan; observe it again.
        retry_plan = self.plan(request)
        try:
            retry_report = await self.emitter.apply(retry_plan)
        except WriteConflict as second:
            report = _combine(done, second.report)
            raise ConcurrentModification(
                "Domain tree changed again while retrying after a write conflict",
                kind=second.kind,
                path=second.path,
                report=report,
            ) from second
        return _combine(done, retry_report)


def _combine(done: list, retry: ApplyReport | None) -> ApplyReport:
    """Merge the first attempt's successes with the retry's outcomes.

    Paths already written in the first attempt keep their first outcome; the
    retry would only report them as skipped.
    """
    report = ApplyReport()
    report.extend(list(done))
    written = {entry.path for entry in done}
    for entry in retry or ():
        if entry.path not in written:
            report.add(entry)
    return report
