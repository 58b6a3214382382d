"""Data model for the CQRS scaffolder.

Request-side models (``DomainName``, ``SagaStep``, ``GenerationRequest``) are
Pydantic v2 models so user input is validated at construction time.  The
run-time structures produced by a single generation run (``ExistingState``,
``GenerationPlan``, ``ApplyReport``) are plain dataclasses: they are never
serialised and live only for the duration of one invocation.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cqrs_scaffold.errors import InvalidDomainName, ScaffoldInputError
from cqrs_scaffold.utils import pluralize, to_camel, to_constant, to_pascal


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ArtifactKind(str, Enum):
    """One generated or edited unit.  Each kind maps to exactly one template."""
    COMMAND = "command"
    QUERY = "query"
    EVENT = "event"
    COMMAND_HANDLER = "command_handler"
    QUERY_HANDLER = "query_handler"
    EVENT_HANDLER = "event_handler"
    SAGA = "saga"
    ACTIONS_INDEX = "actions_index"
    HANDLERS_INDEX = "handlers_index"
    EXTERNAL_HANDLERS_INDEX = "external_handlers_index"
    DOMAIN_MODULE = "domain_module"
    PARENT_MODULE_EDIT = "parent_module_edit"


class GenerationMode(str, Enum):
    """What a single invocation asks the generator to produce."""
    CRUD = "crud"
    SINGLE_COMMAND = "command"
    SINGLE_QUERY = "query"
    SINGLE_EVENT = "event"
    SAGA = "saga"
    INTERACTIVE = "interactive"


class CommandOperation(str, Enum):
    """Write-side operations a domain exposes."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ActionType(str, Enum):
    """How the emitter treats a planned artifact."""
    CREATE_NEW = "create"
    SKIP_EXISTING = "skip"
    MERGE_APPEND = "merge"


class ApplyOutcome(str, Enum):
    """Result of applying one planned action."""
    CREATED = "created"
    SKIPPED = "skipped"
    MERGED = "merged"
    FAILED = "failed"


QUERY_OPERATIONS: tuple[str, ...] = ("getById", "list")

SINGLE_FILE_KINDS: frozenset[ArtifactKind] = frozenset({
    ArtifactKind.COMMAND,
    ArtifactKind.QUERY,
    ArtifactKind.EVENT,
    ArtifactKind.COMMAND_HANDLER,
    ArtifactKind.QUERY_HANDLER,
    ArtifactKind.EVENT_HANDLER,
    ArtifactKind.SAGA,
    ArtifactKind.EXTERNAL_HANDLERS_INDEX,
    ArtifactKind.DOMAIN_MODULE,
})

AGGREGATION_KINDS: frozenset[ArtifactKind] = frozenset({
    ArtifactKind.ACTIONS_INDEX,
    ArtifactKind.HANDLERS_INDEX,
    ArtifactKind.PARENT_MODULE_EDIT,
})

# Producers first, then handlers, then barrels; the parent edit is always last.
PLAN_ORDER: tuple[ArtifactKind, ...] = (
    ArtifactKind.COMMAND,
    ArtifactKind.QUERY,
    ArtifactKind.EVENT,
    ArtifactKind.COMMAND_HANDLER,
    ArtifactKind.QUERY_HANDLER,
    ArtifactKind.EVENT_HANDLER,
    ArtifactKind.SAGA,
    ArtifactKind.ACTIONS_INDEX,
    ArtifactKind.HANDLERS_INDEX,
    ArtifactKind.EXTERNAL_HANDLERS_INDEX,
    ArtifactKind.DOMAIN_MODULE,
    ArtifactKind.PARENT_MODULE_EDIT,
)

_CLI_TYPES: dict[str, tuple[GenerationMode, Optional[CommandOperation]]] = {
    "crud": (GenerationMode.CRUD, None),
    "create": (GenerationMode.SINGLE_COMMAND, CommandOperation.CREATE),
    "update": (GenerationMode.SINGLE_COMMAND, CommandOperation.UPDATE),
    "delete": (GenerationMode.SINGLE_COMMAND, CommandOperation.DELETE),
    "query": (GenerationMode.SINGLE_QUERY, None),
    "event": (GenerationMode.SINGLE_EVENT, None),
    "saga": (GenerationMode.SAGA, None),
}

GENERATION_TYPES: tuple[str, ...] = tuple(_CLI_TYPES)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

_DOMAIN_RE = re.compile(r"^[a-z][a-z0-9]*$")
_STEP_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")


class DomainName(BaseModel):
    """A bounded business entity name such as ``invoice``.

    Input is stripped and lowercased, then must match ``[a-z][a-z0-9]*``.
    All derived forms are computed from the normalised name.
    """

    model_config = ConfigDict(frozen=True)

    name: str

    @field_validator("name", mode="before")
    @classmethod
    def _normalise(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise InvalidDomainName(f"Domain name must be a string, got {type(value).__name__}")
        normalised = value.strip().lower()
        if not _DOMAIN_RE.match(normalised):
            raise InvalidDomainName(
                f"Invalid domain name {value!r}: use letters and digits, starting with a letter"
            )
        return normalised

    @classmethod
    def parse(cls, value: DomainName | str) -> DomainName:
        """Return *value* as a ``DomainName``, validating plain strings."""
        if isinstance(value, DomainName):
            return value
        return cls(name=value)

    @property
    def pascal(self) -> str:
        return to_pascal(self.name)

    @property
    def camel(self) -> str:
        return to_camel(self.name)

    @property
    def plural(self) -> str:
        return pluralize(self.name)

    @property
    def plural_pascal(self) -> str:
        return to_pascal(self.plural)

    @property
    def constant(self) -> str:
        return to_constant(self.name)

    def forms(self) -> dict[str, str]:
        """All derived forms, as exposed to templates."""
        return {
            "domain": self.name,
            "pascal": self.pascal,
            "camel": self.camel,
            "plural": self.plural,
            "plural_pascal": self.plural_pascal,
            "constant": self.constant,
        }

    def __str__(self) -> str:
        return self.name


class SagaStep(BaseModel):
    """One step of a scaffolded saga, optionally reversible."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Step name, e.g. 'reserveStock'")
    has_compensation: bool = Field(default=False, description="Whether a compensate method is generated")

    @field_validator("name")
    @classmethod
    def _valid_name(cls, value: str) -> str:
        value = value.strip()
        if not _STEP_RE.match(value):
            raise ValueError(f"Invalid saga step name {value!r}")
        return value

    @classmethod
    def parse(cls, spec: str) -> SagaStep:
        """Parse the CLI form ``name`` or ``name:compensate``."""
        name, _, flag = spec.partition(":")
        return cls(name=name, has_compensation=flag.strip().lower() in ("compensate", "c", "yes", "true"))


class GenerationRequest(BaseModel):
    """Immutable input for one generation run."""

    model_config = ConfigDict(frozen=True)

    domain: DomainName
    mode: GenerationMode
    operation: Optional[CommandOperation] = Field(
        default=None, description="Write operation for SINGLE_COMMAND requests"
    )
    security_right: Optional[str] = Field(default=None, description="Right required by command handlers")
    entity_type_tag: Optional[str] = Field(default=None, description="Entity type metadata tag")
    repository_token: Optional[str] = Field(default=None, description="Injection token of the repository")
    saga_steps: Optional[tuple[SagaStep, ...]] = Field(
        default=None, description="Ordered saga steps; None means 'use the configured default'"
    )
    service_dependencies: tuple[str, ...] = Field(
        default=(), description="Extra injection tokens for command handlers"
    )

    @field_validator("domain", mode="before")
    @classmethod
    def _parse_domain(cls, value: Any) -> Any:
        if isinstance(value, str):
            return DomainName.parse(value)
        return value

    @field_validator("security_right", "entity_type_tag", "repository_token", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("service_dependencies", mode="before")
    @classmethod
    def _dedupe_services(cls, value: Any) -> Any:
        if value is None:
            return ()
        seen: list[str] = []
        for item in value:
            token = str(item).strip()
            if token and token not in seen:
                seen.append(token)
        return tuple(seen)

    @classmethod
    def from_type(
        cls,
        domain: DomainName | str,
        generation_type: str,
        **kwargs: Any,
    ) -> GenerationRequest:
        """Build a request from the CLI ``type`` argument.

        Raises:
            ScaffoldInputError: If *generation_type* is not one of
                ``GENERATION_TYPES``.
        """
        key = generation_type.strip().lower()
        if key not in _CLI_TYPES:
            raise ScaffoldInputError(
                f"Unknown generation type {generation_type!r}; expected one of {', '.join(GENERATION_TYPES)}"
            )
        mode, operation = _CLI_TYPES[key]
        return cls(domain=domain, mode=mode, operation=operation, **kwargs)

    @property
    def resolved_repository_token(self) -> str:
        return self.repository_token or f"{self.domain.constant}_REPOSITORY"

    @property
    def resolved_entity_type_tag(self) -> str:
        return self.entity_type_tag or self.domain.name


# ---------------------------------------------------------------------------
# Barrel entries
# ---------------------------------------------------------------------------

# Barrel ordering: sagas, commands, queries, events.
_RANK_SUFFIXES: tuple[tuple[str, int], ...] = (
    ("Saga", 0),
    ("CommandHandler", 1),
    ("QueryHandler", 2),
    ("EventHandler", 3),
    (".commands", 1),
    (".queries", 2),
    (".events", 3),
)


def entry_rank(identifier: str) -> Optional[int]:
    """Return the barrel category rank of *identifier*, or ``None`` if unknown."""
    for suffix, rank in _RANK_SUFFIXES:
        if identifier.endswith(suffix):
            return rank
    return None


@dataclass(frozen=True)
class BarrelEntry:
    """One entry an aggregation file should list.

    List-style aggregations (handler barrel, parent module) insert
    ``identifier`` into an array literal and add ``import_line``.  Line-style
    aggregations (the actions barrel) insert ``statement`` as a whole line.
    """

    identifier: str
    import_line: Optional[str] = None
    statement: Optional[str] = None

    @property
    def rank(self) -> Optional[int]:
        return entry_rank(self.identifier)


# ---------------------------------------------------------------------------
# Scanner output
# ---------------------------------------------------------------------------

@dataclass
class ExistingState:
    """What a domain tree looks like right now.

    Paths are relative to the domains directory, using forward slashes.
    """

    domain: DomainName
    present_paths: set[str] = field(default_factory=set)
    present_kinds: set[ArtifactKind] = field(default_factory=set)
    registered: dict[ArtifactKind, set[str]] = field(default_factory=dict)
    snapshots: dict[ArtifactKind, str] = field(default_factory=dict)

    def mark_present(self, kind: ArtifactKind, path: str) -> None:
        self.present_paths.add(path)
        self.present_kinds.add(kind)

    def is_present(self, kind: ArtifactKind) -> bool:
        return kind in self.present_kinds

    def has_path(self, path: str) -> bool:
        return path in self.present_paths

    def registered_ids(self, kind: ArtifactKind) -> set[str]:
        return self.registered.get(kind, set())

    @property
    def is_new_domain(self) -> bool:
        """A domain without its module file has never been registered."""
        return not self.is_present(ArtifactKind.DOMAIN_MODULE)


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlannedAction:
    """One step of a generation plan."""

    kind: ArtifactKind
    target_path: str
    action: ActionType
    rendered_content: str = ""
    entries: tuple[BarrelEntry, ...] = ()
    anchor: Optional[str] = None
    # Aggregation file text as scanned; the emitter refuses to merge into a changed file.
    snapshot: Optional[str] = None

    @property
    def is_merge(self) -> bool:
        return self.action is ActionType.MERGE_APPEND

    @property
    def entry_ids(self) -> tuple[str, ...]:
        return tuple(entry.identifier for entry in self.entries)


@dataclass
class GenerationPlan:
    """Ordered actions computed for one request."""

    request: GenerationRequest
    actions: list[PlannedAction] = field(default_factory=list)

    def __iter__(self) -> Iterator[PlannedAction]:
        return iter(self.actions)

    def __len__(self) -> int:
        return len(self.actions)

    def kinds(self) -> set[ArtifactKind]:
        return {action.kind for action in self.actions}

    def actions_for(self, kind: ArtifactKind) -> list[PlannedAction]:
        return [action for action in self.actions if action.kind is kind]

    def creates(self, kind: ArtifactKind) -> bool:
        """Whether this plan writes a new file for *kind*."""
        return any(
            action.action is not ActionType.SKIP_EXISTING for action in self.actions_for(kind)
        )


# ---------------------------------------------------------------------------
# Apply report
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReportEntry:
    """Outcome of one planned action."""

    path: str
    kind: ArtifactKind
    action: ActionType
    outcome: ApplyOutcome
    reason: str = ""
    merged_entries: tuple[str, ...] = ()


@dataclass
class ApplyReport:
    """Ordered outcomes of applying a plan, used for the summary table."""

    entries: list[ReportEntry] = field(default_factory=list)

    def add(self, entry: ReportEntry) -> None:
        self.entries.append(entry)

    def extend(self, entries: list[ReportEntry]) -> None:
        self.entries.extend(entries)

    def __iter__(self) -> Iterator[ReportEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def count(self, outcome: ApplyOutcome) -> int:
        return sum(1 for entry in self.entries if entry.outcome is outcome)

    def kinds_with(self, outcome: ApplyOutcome) -> set[ArtifactKind]:
        """Distinct artifact kinds that have at least one entry with *outcome*."""
        return {entry.kind for entry in self.entries if entry.outcome is outcome}

    def entries_for(self, kind: ArtifactKind) -> list[ReportEntry]:
        return [entry for entry in self.entries if entry.kind is kind]

    def merged_count(self, kind: ArtifactKind) -> int:
        """Number of new entries merged into the aggregation file of *kind*."""
        return sum(len(entry.merged_entries) for entry in self.entries_for(kind))

    @property
    def succeeded(self) -> list[ReportEntry]:
        return [entry for entry in self.entries if entry.outcome is not ApplyOutcome.FAILED]

    @property
    def has_failures(self) -> bool:
        return self.count(ApplyOutcome.FAILED) > 0
