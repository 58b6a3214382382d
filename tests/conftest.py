"""Shared pytest fixtures for the CQRS scaffolder test suite.

Provides reusable fixtures for:
- Temporary project trees with a configured domains directory
- Ready-wired registry, scanner, planner and generator instances
- Helpers to read generated files and seed existing domain files
"""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from cqrs_scaffold.config import ScaffoldConfig
from cqrs_scaffold.generator import (
    ExistingStructureScanner,
    PlanBuilder,
    ScaffoldGenerator,
    TemplateRegistry,
)
from cqrs_scaffold.models import DomainName, GenerationRequest


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Temporary project root (auto-cleanup)."""
    project_dir = tmp_path / "test-project"
    project_dir.mkdir()
    yield project_dir


@pytest.fixture
def scaffold_config(tmp_project_dir: Path) -> ScaffoldConfig:
    """Config rooted at the temporary project."""
    return ScaffoldConfig(project_root=tmp_project_dir)


@pytest.fixture
def domains_path(scaffold_config: ScaffoldConfig) -> Path:
    """The domains directory, created empty."""
    path = scaffold_config.domains_path
    path.mkdir(parents=True, exist_ok=True)
    return path


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------

@pytest.fixture
def registry(scaffold_config: ScaffoldConfig) -> TemplateRegistry:
    return TemplateRegistry.from_config(scaffold_config)


@pytest.fixture
def scanner(domains_path: Path, registry: TemplateRegistry) -> ExistingStructureScanner:
    return ExistingStructureScanner(domains_path, registry)


@pytest.fixture
def planner(registry: TemplateRegistry, scaffold_config: ScaffoldConfig) -> PlanBuilder:
    return PlanBuilder(registry, scaffold_config.default_saga_steps)


@pytest.fixture
def generator(scaffold_config: ScaffoldConfig, domains_path: Path) -> ScaffoldGenerator:
    return ScaffoldGenerator(scaffold_config)


@pytest.fixture
def invoice() -> DomainName:
    return DomainName(name="invoice")


@pytest.fixture
def crud_request() -> GenerationRequest:
    return GenerationRequest.from_type("invoice", "crud", security_right="INVOICE_WRITE")


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def read_file(domains_path: Path):
    """Read a file relative to the domains directory."""

    def _read(rel_path: str) -> str:
        return (domains_path / rel_path).read_text(encoding="utf-8")

    return _read


@pytest.fixture
def write_file(domains_path: Path):
    """Seed a file relative to the domains directory (dedented)."""

    def _write(rel_path: str, content: str) -> Path:
        target = domains_path / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
        return target

    return _write


@pytest.fixture
def snapshot_tree(domains_path: Path):
    """Return ``{relative_path: text}`` for every file under the domains dir."""

    def _snapshot() -> dict[str, str]:
        return {
            p.relative_to(domains_path).as_posix(): p.read_text(encoding="utf-8")
            for p in sorted(domains_path.rglob("*"))
            if p.is_file()
        }

    return _snapshot
