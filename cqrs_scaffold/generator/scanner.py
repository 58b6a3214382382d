"""Existing-structure scanner.

Observes a domain tree on disk and reports which artifacts already exist.
For the aggregation files it also records the identifiers they currently
register so the planner can merge rather than overwrite.  The scanner never
writes, and it never caches: every run re-observes the filesystem.
"""

from __future__ import annotations

from pathlib import Path

from cqrs_scaffold.models import (
    AGGREGATION_KINDS,
    ArtifactKind,
    DomainName,
    ExistingState,
)
from cqrs_scaffold.utils import read_text_if_exists

from .barrels import export_specifiers, list_identifiers
from .templates import TemplateRegistry


class ExistingStructureScanner:
    """Read-only inspection of ``<domains_path>/<domain>``."""

    def __init__(self, domains_path: str | Path, registry: TemplateRegistry) -> None:
        self.domains_path = Path(domains_path)
        self.registry = registry

    def scan(self, domain: DomainName | str) -> ExistingState:
        """Report which artifacts of *domain* are already present.

        A missing domain root is not an error: every domain artifact is
        reported absent so first-time scaffolding can proceed.  The parent
        aggregation file lives outside the domain root and is observed either
        way.
        """
        domain = DomainName.parse(domain)
        state = ExistingState(domain=domain)
        domain_root = self.domains_path / domain.name

        for kind in self.registry.kinds():
            if kind is not ArtifactKind.PARENT_MODULE_EDIT and not domain_root.is_dir():
                continue
            for rel_path in self.registry.paths(kind, domain):
                full_path = self.domains_path / rel_path
                if not full_path.is_file():
                    continue
                state.mark_present(kind, rel_path)
                if kind in AGGREGATION_KINDS:
                    text = read_text_if_exists(full_path) or ""
                    state.snapshots[kind] = text
                    state.registered[kind] = self._registered(kind, domain, text)

        return state

    def _registered(self, kind: ArtifactKind, domain: DomainName, text: str) -> set[str]:
        if kind is ArtifactKind.ACTIONS_INDEX:
            return set(export_specifiers(text))
        anchor = self.registry.anchor(kind, domain)
        identifiers = list_identifiers(text, anchor) if anchor else None
        return set(identifiers or ())
