"""Plan builder: decides what to create, skip and merge.

Given a ``GenerationRequest`` and the ``ExistingState`` observed by the
scanner, computes an ordered ``GenerationPlan``.  Planning performs no I/O;
every input or structural error is raised here, before the emitter touches
the filesystem.
"""

from __future__ import annotations

from typing import Any

from cqrs_scaffold.errors import DanglingEventReference, MissingRequiredParam
from cqrs_scaffold.models import (
    AGGREGATION_KINDS,
    PLAN_ORDER,
    QUERY_OPERATIONS,
    ActionType,
    ArtifactKind,
    CommandOperation,
    ExistingState,
    GenerationMode,
    GenerationPlan,
    GenerationRequest,
    PlannedAction,
    SagaStep,
)

from .templates import TemplateRegistry


# ---------------------------------------------------------------------------
# Mode resolution
# ---------------------------------------------------------------------------

_MODE_KINDS: dict[GenerationMode, frozenset[ArtifactKind]] = {
    GenerationMode.CRUD: frozenset(PLAN_ORDER),
    GenerationMode.SINGLE_COMMAND: frozenset({
        ArtifactKind.COMMAND,
        ArtifactKind.COMMAND_HANDLER,
        ArtifactKind.ACTIONS_INDEX,
        ArtifactKind.HANDLERS_INDEX,
    }),
    GenerationMode.SINGLE_QUERY: frozenset({
        ArtifactKind.QUERY,
        ArtifactKind.QUERY_HANDLER,
        ArtifactKind.ACTIONS_INDEX,
        ArtifactKind.HANDLERS_INDEX,
    }),
    GenerationMode.SINGLE_EVENT: frozenset({
        ArtifactKind.EVENT,
        ArtifactKind.EVENT_HANDLER,
        ArtifactKind.ACTIONS_INDEX,
        ArtifactKind.HANDLERS_INDEX,
    }),
    GenerationMode.SAGA: frozenset({
        ArtifactKind.SAGA,
        ArtifactKind.HANDLERS_INDEX,
    }),
}

# A domain scaffolded for the first time also needs its module and registration.
_NEW_DOMAIN_KINDS: frozenset[ArtifactKind] = frozenset({
    ArtifactKind.EXTERNAL_HANDLERS_INDEX,
    ArtifactKind.DOMAIN_MODULE,
    ArtifactKind.PARENT_MODULE_EDIT,
})

# Kinds whose generated code imports the domain's Event classes.
_EVENT_CONSUMERS: tuple[ArtifactKind, ...] = (ArtifactKind.EVENT_HANDLER, ArtifactKind.SAGA)


class PlanBuilder:
    """Computes the ordered list of actions for one request."""

    def __init__(
        self,
        registry: TemplateRegistry,
        default_saga_steps: list[SagaStep] | tuple[SagaStep, ...] = (),
    ) -> None:
        self.registry = registry
        self.default_saga_steps = tuple(default_saga_steps)

    def required_kinds(self, request: GenerationRequest, state: ExistingState) -> set[ArtifactKind]:
        """Resolve the request mode to the artifact kinds it needs."""
        if request.mode is GenerationMode.INTERACTIVE:
            raise MissingRequiredParam("mode")
        kinds = set(_MODE_KINDS[request.mode])
        if state.is_new_domain:
            kinds |= _NEW_DOMAIN_KINDS
        return kinds

    def build(self, request: GenerationRequest, state: ExistingState) -> GenerationPlan:
        """Build the plan.

        Missing parameters are reported before structural problems, so an
        empty saga is rejected even when the domain has no events yet.

        Raises:
            MissingRequiredParam: If the request lacks a parameter a template
                needs (e.g. a saga without steps).
            DanglingEventReference: If an event handler or saga would import
                an event class that neither exists nor is planned.
        """
        domain = request.domain
        kinds = self.required_kinds(request, state)
        params = self._params(request, state, kinds)

        self._check_event_references(kinds, state)

        plan = GenerationPlan(request=request)
        for kind in PLAN_ORDER:
            if kind not in kinds:
                continue
            if kind in AGGREGATION_KINDS:
                plan.actions.append(self._plan_merge(kind, request, state, params))
                continue
            for path, content in self.registry.render(kind, domain, params):
                if state.has_path(path):
                    plan.actions.append(PlannedAction(kind, path, ActionType.SKIP_EXISTING))
                else:
                    plan.actions.append(PlannedAction(kind, path, ActionType.CREATE_NEW, content))
        return plan

    # -- Internals -----------------------------------------------------------

    def _params(
        self,
        request: GenerationRequest,
        state: ExistingState,
        kinds: set[ArtifactKind],
    ) -> dict[str, Any]:
        if request.mode is GenerationMode.SINGLE_COMMAND:
            if request.operation is None:
                raise MissingRequiredParam("operation", kind=ArtifactKind.COMMAND)
            operations = [request.operation.value]
        else:
            operations = [op.value for op in CommandOperation]

        if request.saga_steps is not None:
            saga_steps = request.saga_steps
        elif request.mode is GenerationMode.CRUD:
            saga_steps = self.default_saga_steps
        else:
            saga_steps = ()
        if ArtifactKind.SAGA in kinds and not saga_steps:
            raise MissingRequiredParam(
                "saga_steps",
                kind=ArtifactKind.SAGA,
                path=self.registry.paths(ArtifactKind.SAGA, request.domain)[0],
            )

        return {
            "command_operations": operations,
            "query_operations": list(QUERY_OPERATIONS),
            "saga_steps": list(saga_steps),
            "security_right": request.security_right,
            "entity_type_tag": request.resolved_entity_type_tag,
            "repository_token": request.resolved_repository_token,
            "service_dependencies": list(request.service_dependencies),
            "publish_events": ArtifactKind.EVENT in kinds or state.is_present(ArtifactKind.EVENT),
            "contributors": kinds,
        }

    def _check_event_references(self, kinds: set[ArtifactKind], state: ExistingState) -> None:
        if ArtifactKind.EVENT in kinds or state.is_present(ArtifactKind.EVENT):
            return
        for consumer in _EVENT_CONSUMERS:
            if consumer in kinds:
                raise DanglingEventReference(
                    f"{consumer.value} imports the domain's created event, "
                    "but the events file neither exists nor is part of this plan",
                    kind=consumer,
                    path=self.registry.paths(ArtifactKind.EVENT, state.domain)[0],
                )

    def _plan_merge(
        self,
        kind: ArtifactKind,
        request: GenerationRequest,
        state: ExistingState,
        params: dict[str, Any],
    ) -> PlannedAction:
        domain = request.domain
        path = self.registry.paths(kind, domain)[0]
        anchor = self.registry.anchor(kind, domain)
        contributed = self.registry.entries(kind, domain, params)

        if not state.has_path(path):
            [(path, content)] = self.registry.render(kind, domain, params)
            return PlannedAction(
                kind, path, ActionType.MERGE_APPEND, content,
                entries=tuple(contributed), anchor=anchor,
            )

        registered = state.registered_ids(kind)
        new_entries = tuple(e for e in contributed if e.identifier not in registered)
        return PlannedAction(
            kind, path, ActionType.MERGE_APPEND,
            entries=new_entries, anchor=anchor, snapshot=state.snapshots.get(kind),
        )
