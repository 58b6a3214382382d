"""Plan emitter: applies a ``GenerationPlan`` to the filesystem.

Actions are applied strictly in plan order.  Each file write is atomic
(temp file + rename) so an interrupted run can leave later files missing but
never half-written.  Nothing is rolled back on failure: the failing action is
recorded in the ``ApplyReport`` and the raised error carries that report.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from cqrs_scaffold.errors import EmissionError, MergeAnchorNotFound, WriteConflict, WriteFailed
from cqrs_scaffold.models import (
    ActionType,
    ApplyOutcome,
    ApplyReport,
    GenerationPlan,
    PlannedAction,
    ReportEntry,
)
from cqrs_scaffold.utils import atomic_write_text, read_text_if_exists

from .barrels import insert_imports, insert_list_entries, insert_statements


class Emitter:
    """Executes plans against ``<domains_path>``."""

    def __init__(self, domains_path: str | Path) -> None:
        self.domains_path = Path(domains_path)

    async def apply(self, plan: GenerationPlan) -> ApplyReport:
        """Apply every action of *plan* in order.

        Returns:
            The report listing one entry per action.

        Raises:
            WriteConflict: A file planned as new already exists, or an
                aggregation file changed since it was scanned.
            MergeAnchorNotFound: An aggregation file lacks its insertion point.
            WriteFailed: The filesystem refused a read or write.
        """
        report = ApplyReport()
        for action in plan:
            try:
                entry = await self._apply_action(action)
            except EmissionError as exc:
                self._record_failure(report, action, exc)
                raise
            except (OSError, UnicodeError) as exc:
                failure = WriteFailed(
                    f"Could not write file: {exc}",
                    kind=action.kind,
                    path=action.target_path,
                )
                self._record_failure(report, action, failure)
                raise failure from exc
            report.add(entry)
        return report

    @staticmethod
    def _record_failure(report: ApplyReport, action: PlannedAction, exc: EmissionError) -> None:
        report.add(ReportEntry(
            path=action.target_path,
            kind=action.kind,
            action=action.action,
            outcome=ApplyOutcome.FAILED,
            reason=exc.message,
        ))
        exc.report = report

    # -- Actions -------------------------------------------------------------

    async def _apply_action(self, action: PlannedAction) -> ReportEntry:
        if action.action is ActionType.SKIP_EXISTING:
            return ReportEntry(
                action.target_path, action.kind, action.action,
                ApplyOutcome.SKIPPED, reason="already exists",
            )

        if action.action is ActionType.CREATE_NEW or (action.is_merge and action.rendered_content):
            await asyncio.to_thread(self._create, action)
            return ReportEntry(
                action.target_path, action.kind, action.action,
                ApplyOutcome.CREATED, merged_entries=action.entry_ids,
            )

        merged = await asyncio.to_thread(self._merge, action)
        return ReportEntry(
            action.target_path, action.kind, action.action,
            ApplyOutcome.MERGED, merged_entries=merged,
        )

    def _create(self, action: PlannedAction) -> None:
        target = self.domains_path / action.target_path
        if target.exists():
            raise WriteConflict(
                "File appeared after the plan was built",
                kind=action.kind,
                path=action.target_path,
            )
        atomic_write_text(target, action.rendered_content)

    def _merge(self, action: PlannedAction) -> tuple[str, ...]:
        if not action.entries:
            return ()

        target = self.domains_path / action.target_path
        text = read_text_if_exists(target)
        if text is None:
            raise WriteConflict(
                "Aggregation file disappeared after the plan was built",
                kind=action.kind,
                path=action.target_path,
            )
        if action.snapshot is not None and text != action.snapshot:
            raise WriteConflict(
                "Aggregation file changed after the plan was built",
                kind=action.kind,
                path=action.target_path,
            )

        if action.anchor is None:
            updated = insert_statements(text, action.entries)
        else:
            updated = insert_list_entries(text, action.anchor, action.entry_ids)
            if updated is None:
                raise MergeAnchorNotFound(
                    "Cannot locate the list to insert into; edit the file manually",
                    kind=action.kind,
                    path=action.target_path,
                )
            updated = insert_imports(
                updated, [e.import_line for e in action.entries if e.import_line]
            )

        if updated != text:
            atomic_write_text(target, updated)
        return action.entry_ids
