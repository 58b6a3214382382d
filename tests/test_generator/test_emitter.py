"""Tests for the plan emitter.

Covers:
- Creating, skipping and merging files in plan order
- Report contents per outcome
- WriteConflict, MergeAnchorNotFound and WriteFailed carrying the partial report
"""

from __future__ import annotations

from pathlib import Path

import pytest

from cqrs_scaffold.errors import MergeAnchorNotFound, WriteConflict, WriteFailed
from cqrs_scaffold.generator import Emitter
from cqrs_scaffold.models import ActionType, ApplyOutcome, ArtifactKind, GenerationRequest


pytestmark = pytest.mark.unit


@pytest.fixture
def emitter(domains_path: Path) -> Emitter:
    return Emitter(domains_path)


@pytest.fixture
def build_plan(scanner, planner):
    def _build(request: GenerationRequest):
        return planner.build(request, scanner.scan(request.domain))

    return _build


def _seed_existing_domain(write_file, handlers_index: str | None = None) -> None:
    write_file("invoice/invoice.domain.module.ts", "export class InvoiceDomainModule {}\n")
    write_file("invoice/actions/invoice.events.ts", "export {};\n")
    write_file("invoice/actions/index.ts", "export * from './invoice.events';\n")
    write_file("invoice/handlers/index.ts", handlers_index or """
        import { InvoiceCreatedActivityEventHandler } from './handler.event.invoice.created.activity';

        export const INVOICE_HANDLERS = [
          InvoiceCreatedActivityEventHandler,
        ];
    """)


class TestApply:
    @pytest.mark.asyncio
    async def test_creates_new_domain(self, emitter, build_plan, crud_request, domains_path: Path):
        plan = build_plan(crud_request)
        report = await emitter.apply(plan)

        assert len(report) == len(plan)
        assert [entry.path for entry in report] == [action.target_path for action in plan]
        assert report.count(ApplyOutcome.CREATED) == len(plan)
        for action in plan:
            assert (domains_path / action.target_path).read_text(encoding="utf-8") == action.rendered_content

    @pytest.mark.asyncio
    async def test_aggregation_created_lists_its_entries(self, emitter, build_plan, crud_request):
        report = await emitter.apply(build_plan(crud_request))
        assert report.merged_count(ArtifactKind.HANDLERS_INDEX) == 7
        assert report.merged_count(ArtifactKind.ACTIONS_INDEX) == 3
        assert report.merged_count(ArtifactKind.PARENT_MODULE_EDIT) == 1

    @pytest.mark.asyncio
    async def test_skip_is_reported(self, emitter, build_plan, write_file):
        _seed_existing_domain(write_file)
        report = await emitter.apply(build_plan(GenerationRequest.from_type("invoice", "event")))
        [events] = report.entries_for(ArtifactKind.EVENT)
        assert events.outcome is ApplyOutcome.SKIPPED
        assert events.reason == "already exists"
        assert events.action is ActionType.SKIP_EXISTING

    @pytest.mark.asyncio
    async def test_skip_leaves_file_untouched(self, emitter, build_plan, write_file, read_file):
        _seed_existing_domain(write_file)
        await emitter.apply(build_plan(GenerationRequest.from_type("invoice", "event")))
        assert read_file("invoice/actions/invoice.events.ts") == "export {};\n"

    @pytest.mark.asyncio
    async def test_merge_appends_entries_and_imports(self, emitter, build_plan, write_file, read_file):
        _seed_existing_domain(write_file)
        report = await emitter.apply(build_plan(GenerationRequest.from_type("invoice", "query")))

        [merge] = report.entries_for(ArtifactKind.HANDLERS_INDEX)
        assert merge.outcome is ApplyOutcome.MERGED
        assert merge.merged_entries == ("GetInvoiceByIdQueryHandler", "ListInvoicesQueryHandler")

        text = read_file("invoice/handlers/index.ts")
        assert "import { GetInvoiceByIdQueryHandler } from './handler.query.invoice.getById';" in text
        assert text.index("GetInvoiceByIdQueryHandler,") < text.index("InvoiceCreatedActivityEventHandler,")

        actions = read_file("invoice/actions/index.ts")
        assert actions == "export * from './invoice.queries';\nexport * from './invoice.events';\n"

    @pytest.mark.asyncio
    async def test_empty_merge_writes_nothing(self, emitter, build_plan, write_file, domains_path: Path):
        _seed_existing_domain(write_file)
        index = domains_path / "invoice/handlers/index.ts"
        before = index.stat().st_mtime_ns
        report = await emitter.apply(build_plan(GenerationRequest.from_type("invoice", "event")))
        [merge] = report.entries_for(ArtifactKind.HANDLERS_INDEX)
        assert merge.outcome is ApplyOutcome.MERGED
        assert merge.merged_entries == ()
        assert index.stat().st_mtime_ns == before


class TestFailures:
    @pytest.mark.asyncio
    async def test_write_conflict_carries_report(self, emitter, build_plan, write_file):
        plan = build_plan(GenerationRequest.from_type("invoice", "query"))
        # Another writer creates the list handler after planning.
        write_file("invoice/handlers/handler.query.invoice.list.ts", "// theirs\n")

        with pytest.raises(WriteConflict) as exc_info:
            await emitter.apply(plan)

        exc = exc_info.value
        assert exc.kind is ArtifactKind.QUERY_HANDLER
        assert exc.path == "invoice/handlers/handler.query.invoice.list.ts"
        assert exc.report is not None
        assert exc.report.entries[-1].outcome is ApplyOutcome.FAILED
        assert [e.outcome for e in exc.report.succeeded] == [ApplyOutcome.CREATED, ApplyOutcome.CREATED]

    @pytest.mark.asyncio
    async def test_conflicting_file_not_overwritten(self, emitter, build_plan, write_file, read_file):
        plan = build_plan(GenerationRequest.from_type("invoice", "query"))
        write_file("invoice/actions/invoice.queries.ts", "// theirs\n")
        with pytest.raises(WriteConflict):
            await emitter.apply(plan)
        assert read_file("invoice/actions/invoice.queries.ts") == "// theirs\n"

    @pytest.mark.asyncio
    async def test_vanished_aggregation_is_a_conflict(self, emitter, build_plan, write_file, domains_path: Path):
        _seed_existing_domain(write_file)
        plan = build_plan(GenerationRequest.from_type("invoice", "query"))
        (domains_path / "invoice/handlers/index.ts").unlink()
        with pytest.raises(WriteConflict) as exc_info:
            await emitter.apply(plan)
        assert exc_info.value.kind is ArtifactKind.HANDLERS_INDEX

    @pytest.mark.asyncio
    async def test_missing_anchor(self, emitter, build_plan, write_file, read_file):
        _seed_existing_domain(write_file, handlers_index="export default [];\n")
        plan = build_plan(GenerationRequest.from_type("invoice", "query"))

        with pytest.raises(MergeAnchorNotFound) as exc_info:
            await emitter.apply(plan)

        exc = exc_info.value
        assert exc.path == "invoice/handlers/index.ts"
        assert read_file("invoice/handlers/index.ts") == "export default [];\n"
        # Actions before the failure stay applied.
        created = exc.report.kinds_with(ApplyOutcome.CREATED)
        assert {ArtifactKind.QUERY, ArtifactKind.QUERY_HANDLER} <= created
        assert exc.report.kinds_with(ApplyOutcome.FAILED) == {ArtifactKind.HANDLERS_INDEX}

    @pytest.mark.asyncio
    async def test_aggregation_edited_after_scan_is_a_conflict(
        self, emitter, build_plan, write_file, read_file,
    ):
        _seed_existing_domain(write_file)
        plan = build_plan(GenerationRequest.from_type("invoice", "query"))
        edited = read_file("invoice/handlers/index.ts").replace(
            "  InvoiceCreatedActivityEventHandler,\n",
            "  InvoiceCreatedActivityEventHandler,\n  AuditTrailHandler,\n",
        )
        write_file("invoice/handlers/index.ts", edited)

        with pytest.raises(WriteConflict) as exc_info:
            await emitter.apply(plan)

        assert exc_info.value.kind is ArtifactKind.HANDLERS_INDEX
        assert exc_info.value.report.kinds_with(ApplyOutcome.FAILED) == {ArtifactKind.HANDLERS_INDEX}
        assert read_file("invoice/handlers/index.ts") == edited

    @pytest.mark.asyncio
    async def test_filesystem_error_becomes_write_failed(self, emitter, build_plan, crud_request, write_file):
        # A regular file where the handlers directory should be.
        write_file("invoice/handlers", "not a directory\n")
        plan = build_plan(crud_request)

        with pytest.raises(WriteFailed) as exc_info:
            await emitter.apply(plan)

        exc = exc_info.value
        assert isinstance(exc.__cause__, OSError)
        assert exc.kind is ArtifactKind.COMMAND_HANDLER
        assert exc.path == "invoice/handlers/handler.command.invoice.create.ts"
        assert exc.report is not None
        assert [e.kind for e in exc.report.succeeded] == [
            ArtifactKind.COMMAND,
            ArtifactKind.QUERY,
            ArtifactKind.EVENT,
        ]
        failed = exc.report.entries[-1]
        assert failed.outcome is ApplyOutcome.FAILED
        assert failed.kind is ArtifactKind.COMMAND_HANDLER
        assert failed.reason.startswith("Could not write file")
