"""CQRS scaffolder configuration.

Centralised, typed configuration for the generator.  All settings use
Pydantic v2 models so they can be validated at construction time and serialised
to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from cqrs_scaffold.models import DomainName, SagaStep


def _default_saga_steps() -> list[SagaStep]:
    return [
        SagaStep(name="validate", has_compensation=False),
        SagaStep(name="process", has_compensation=True),
    ]


class ScaffoldConfig(BaseModel):
    """Global scaffolder configuration.

    Instances are typically created once by the CLI entry point and then
    passed to ``ScaffoldGenerator``.
    """

    project_root: Path = Field(default=Path("."))
    domains_dir: str = Field(
        default="src/app/domains",
        description="Directory holding one sub-directory per domain, relative to project_root",
    )
    parent_module_file: str = Field(
        default="domains.module.ts",
        description="Aggregation file listing every domain module, relative to domains_dir",
    )
    parent_module_class: str = Field(default="DomainsModule")
    cqrs_import: str = Field(
        default="@app/cqrs",
        description="Module specifier the generated files import framework symbols from",
    )
    default_saga_steps: list[SagaStep] = Field(
        default_factory=_default_saga_steps,
        description="Steps used for the CRUD saga when the request supplies none",
    )

    # ------------------------------------------------------------------
    # Derived paths (read-only properties)
    # ------------------------------------------------------------------

    @property
    def domains_path(self) -> Path:
        """Directory that contains every domain root."""
        return self.project_root / self.domains_dir

    @property
    def parent_module_path(self) -> Path:
        """Path to the parent aggregation file."""
        return self.domains_path / self.parent_module_file

    def domain_root(self, domain: DomainName | str) -> Path:
        """Return the root directory of a single domain."""
        name = domain.name if isinstance(domain, DomainName) else str(domain)
        return self.domains_path / name

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Returns:
            The path where the file was written.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "ScaffoldConfig":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "ScaffoldConfig":
        """Build a ``ScaffoldConfig`` from environment variables.

        Recognised variables (all optional):
            CQRS_SCAFFOLD_ROOT, CQRS_SCAFFOLD_DOMAINS_DIR,
            CQRS_SCAFFOLD_PARENT_MODULE, CQRS_SCAFFOLD_PARENT_CLASS,
            CQRS_SCAFFOLD_CQRS_IMPORT.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("CQRS_SCAFFOLD_ROOT"):
            kwargs["project_root"] = Path(os.environ["CQRS_SCAFFOLD_ROOT"])
        if os.environ.get("CQRS_SCAFFOLD_DOMAINS_DIR"):
            kwargs["domains_dir"] = os.environ["CQRS_SCAFFOLD_DOMAINS_DIR"]
        if os.environ.get("CQRS_SCAFFOLD_PARENT_MODULE"):
            kwargs["parent_module_file"] = os.environ["CQRS_SCAFFOLD_PARENT_MODULE"]
        if os.environ.get("CQRS_SCAFFOLD_PARENT_CLASS"):
            kwargs["parent_module_class"] = os.environ["CQRS_SCAFFOLD_PARENT_CLASS"]
        if os.environ.get("CQRS_SCAFFOLD_CQRS_IMPORT"):
            kwargs["cqrs_import"] = os.environ["CQRS_SCAFFOLD_CQRS_IMPORT"]
        return cls(**kwargs)
