"""Tests for the ScaffoldGenerator orchestrator.

Covers:
- Wiring from ScaffoldConfig
- plan() without side effects
- run() end-to-end on a temporary tree
- Single retry after a WriteConflict, ConcurrentModification on a second one
"""

from __future__ import annotations

from pathlib import Path

import pytest

from cqrs_scaffold.config import ScaffoldConfig
from cqrs_scaffold.errors import (
    ConcurrentModification,
    DanglingEventReference,
    InvalidDomainName,
    WriteConflict,
)
from cqrs_scaffold.generator import ScaffoldGenerator
from cqrs_scaffold.models import ApplyOutcome, ArtifactKind, GenerationRequest, SagaStep


# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _race(monkeypatch, generator: ScaffoldGenerator, writes: list[tuple[Path, str]]) -> list[int]:
    """Make each apply() call first drop the next file from *writes* on disk."""
    original = generator.emitter.apply
    calls: list[int] = []

    async def racing_apply(plan):
        calls.append(len(calls) + 1)
        if writes:
            path, content = writes.pop(0)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return await original(plan)

    monkeypatch.setattr(generator.emitter, "apply", racing_apply)
    return calls


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


class TestWiring:
    def test_default_config(self):
        generator = ScaffoldGenerator()
        assert generator.config.domains_dir == "src/app/domains"
        assert generator.emitter.domains_path == generator.config.domains_path
        assert generator.scanner.domains_path == generator.config.domains_path

    def test_config_flows_into_registry(self, tmp_path: Path):
        config = ScaffoldConfig(
            project_root=tmp_path, cqrs_import="@acme/cqrs", parent_module_class="RootDomains"
        )
        generator = ScaffoldGenerator(config)
        assert generator.registry.cqrs_import == "@acme/cqrs"
        assert generator.registry.parent_module_class == "RootDomains"

    def test_default_saga_steps_from_config(self, tmp_path: Path):
        config = ScaffoldConfig(project_root=tmp_path, default_saga_steps=[SagaStep(name="audit")])
        generator = ScaffoldGenerator(config)
        assert generator.planner.default_saga_steps == (SagaStep(name="audit"),)


# ---------------------------------------------------------------------------
# plan / run
# ---------------------------------------------------------------------------


class TestRun:
    def test_plan_writes_nothing(self, generator, crud_request, snapshot_tree):
        plan = generator.plan(crud_request)
        assert len(plan) == 15
        assert snapshot_tree() == {}

    @pytest.mark.asyncio
    async def test_run_crud(self, generator, crud_request, domains_path: Path):
        report = await generator.run(crud_request)
        assert not report.has_failures
        assert report.count(ApplyOutcome.CREATED) == 15
        assert (domains_path / "invoice/handlers/saga.invoice.processing.ts").is_file()
        assert (domains_path / "domains.module.ts").is_file()

    @pytest.mark.asyncio
    async def test_run_rejects_dangling_events(self, generator, write_file, snapshot_tree):
        write_file("invoice/invoice.domain.module.ts", "export class InvoiceDomainModule {}\n")
        before = snapshot_tree()
        request = GenerationRequest.from_type("invoice", "saga", saga_steps=[SagaStep(name="notify")])
        with pytest.raises(DanglingEventReference):
            await generator.run(request)
        assert snapshot_tree() == before

    def test_invalid_domain_before_io(self):
        with pytest.raises(InvalidDomainName):
            GenerationRequest.from_type("In-Voice", "crud")


# ---------------------------------------------------------------------------
# Retry on write conflicts
# ---------------------------------------------------------------------------


class TestRetry:
    @pytest.mark.asyncio
    async def test_conflict_on_first_file_is_retried(self, generator, monkeypatch, domains_path: Path):
        queries = domains_path / "invoice/actions/invoice.queries.ts"
        calls = _race(monkeypatch, generator, [(queries, "// theirs\n")])

        report = await generator.run(GenerationRequest.from_type("invoice", "query"))

        assert calls == [1, 2]
        assert not report.has_failures
        [entry] = report.entries_for(ArtifactKind.QUERY)
        assert entry.outcome is ApplyOutcome.SKIPPED
        assert queries.read_text(encoding="utf-8") == "// theirs\n"

    @pytest.mark.asyncio
    async def test_retry_keeps_first_attempt_outcomes(self, generator, monkeypatch, domains_path: Path):
        list_handler = domains_path / "invoice/handlers/handler.query.invoice.list.ts"
        _race(monkeypatch, generator, [(list_handler, "// theirs\n")])

        report = await generator.run(GenerationRequest.from_type("invoice", "query"))

        outcomes = {entry.path: entry.outcome for entry in report}
        assert outcomes["invoice/actions/invoice.queries.ts"] is ApplyOutcome.CREATED
        assert outcomes["invoice/handlers/handler.query.invoice.getById.ts"] is ApplyOutcome.CREATED
        assert outcomes["invoice/handlers/handler.query.invoice.list.ts"] is ApplyOutcome.SKIPPED
        assert len(report) == len({entry.path for entry in report})

    @pytest.mark.asyncio
    async def test_second_conflict_raises(self, generator, monkeypatch, domains_path: Path):
        _race(monkeypatch, generator, [
            (domains_path / "invoice/actions/invoice.queries.ts", "// first\n"),
            (domains_path / "invoice/handlers/handler.query.invoice.list.ts", "// second\n"),
        ])

        with pytest.raises(ConcurrentModification) as exc_info:
            await generator.run(GenerationRequest.from_type("invoice", "query"))

        exc = exc_info.value
        assert isinstance(exc.__cause__, WriteConflict)
        assert exc.path == "invoice/handlers/handler.query.invoice.list.ts"
        assert exc.report is not None
        assert exc.report.kinds_with(ApplyOutcome.FAILED) == {ArtifactKind.QUERY_HANDLER}

    @pytest.mark.asyncio
    async def test_aggregation_edit_during_run_is_retried(
        self, generator, monkeypatch, domains_path: Path, write_file, read_file,
    ):
        write_file("invoice/invoice.domain.module.ts", "export class InvoiceDomainModule {}\n")
        write_file("invoice/actions/invoice.events.ts", "export {};\n")
        write_file("invoice/actions/index.ts", "export * from './invoice.events';\n")
        write_file("invoice/handlers/index.ts", """
            import { InvoiceCreatedActivityEventHandler } from './handler.event.invoice.created.activity';

            export const INVOICE_HANDLERS = [
              InvoiceCreatedActivityEventHandler,
            ];
        """)
        edited = (
            "import { AuditTrailHandler } from './audit';\n"
            + read_file("invoice/handlers/index.ts").replace(
                "  InvoiceCreatedActivityEventHandler,\n",
                "  InvoiceCreatedActivityEventHandler,\n  AuditTrailHandler,\n",
            )
        )
        calls = _race(monkeypatch, generator, [(domains_path / "invoice/handlers/index.ts", edited)])

        report = await generator.run(GenerationRequest.from_type("invoice", "query"))

        assert calls == [1, 2]
        assert not report.has_failures
        assert report.merged_count(ArtifactKind.HANDLERS_INDEX) == 2
        text = read_file("invoice/handlers/index.ts")
        assert "  AuditTrailHandler,\n" in text
        assert "import { AuditTrailHandler } from './audit';" in text
        assert "  ListInvoicesQueryHandler,\n" in text
