"""Jinja2 template rendering for CQRS domain scaffolding.

Provides two layers:

* ``TemplateRenderer`` -- loads ``.j2`` templates from the
  ``cqrs_scaffold/generator/templates/`` directory and renders them with a
  context dictionary.
* ``TemplateRegistry`` -- maps every ``ArtifactKind`` to exactly one template
  and one target path pattern, and knows which barrel entries each kind
  contributes.  Rendering is a pure function of (kind, domain, params).
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from cqrs_scaffold.errors import MissingRequiredParam, UnknownArtifactKind
from cqrs_scaffold.models import (
    QUERY_OPERATIONS,
    ArtifactKind,
    BarrelEntry,
    CommandOperation,
    DomainName,
)
from cqrs_scaffold.utils import to_camel, to_constant, to_pascal


# ---------------------------------------------------------------------------
# Template directory discovery
# ---------------------------------------------------------------------------

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders Jinja2 templates for domain scaffolding.

    The renderer discovers ``.j2`` template files under a configurable
    template directory.  Templates are rendered with a context dictionary that
    contains the derived domain names, class symbols and request parameters.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([]),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        # Register custom filters
        self.env.filters["pascal_case"] = to_pascal
        self.env.filters["camel_case"] = to_camel
        self.env.filters["constant_case"] = to_constant

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a single template with the provided context.

        Args:
            template_path: Path relative to the template directory (e.g.
                ``"handlers/saga.ts.j2"``).
            context: Dictionary of variables available inside the template.

        Returns:
            The rendered template content as a string.
        """
        template = self.env.get_template(template_path)
        return template.render(**context)


# ---------------------------------------------------------------------------
# Artifact registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ArtifactTemplate:
    """Template and target path pattern of one artifact kind.

    ``path`` is relative to the domains directory and may use ``{domain}``,
    ``{operation}`` and ``{parent_module_file}``.  Kinds with ``fan_out`` set
    produce one file per operation listed in that parameter.
    """

    template: str
    path: str
    fan_out: Optional[str] = None
    required: tuple[str, ...] = ()


_ARTIFACTS: dict[ArtifactKind, ArtifactTemplate] = {
    ArtifactKind.COMMAND: ArtifactTemplate(
        "actions/commands.ts.j2",
        "{domain}/actions/{domain}.commands.ts",
    ),
    ArtifactKind.QUERY: ArtifactTemplate(
        "actions/queries.ts.j2",
        "{domain}/actions/{domain}.queries.ts",
    ),
    ArtifactKind.EVENT: ArtifactTemplate(
        "actions/events.ts.j2",
        "{domain}/actions/{domain}.events.ts",
    ),
    ArtifactKind.COMMAND_HANDLER: ArtifactTemplate(
        "handlers/command_handler.ts.j2",
        "{domain}/handlers/handler.command.{domain}.{operation}.ts",
        fan_out="command_operations",
        required=("command_operations",),
    ),
    ArtifactKind.QUERY_HANDLER: ArtifactTemplate(
        "handlers/query_handler.ts.j2",
        "{domain}/handlers/handler.query.{domain}.{operation}.ts",
        fan_out="query_operations",
    ),
    ArtifactKind.EVENT_HANDLER: ArtifactTemplate(
        "handlers/event_handler.ts.j2",
        "{domain}/handlers/handler.event.{domain}.created.activity.ts",
    ),
    ArtifactKind.SAGA: ArtifactTemplate(
        "handlers/saga.ts.j2",
        "{domain}/handlers/saga.{domain}.processing.ts",
        required=("saga_steps",),
    ),
    ArtifactKind.ACTIONS_INDEX: ArtifactTemplate(
        "actions/index.ts.j2",
        "{domain}/actions/index.ts",
        required=("contributors",),
    ),
    ArtifactKind.HANDLERS_INDEX: ArtifactTemplate(
        "handlers/index.ts.j2",
        "{domain}/handlers/index.ts",
        required=("contributors",),
    ),
    ArtifactKind.EXTERNAL_HANDLERS_INDEX: ArtifactTemplate(
        "external.handlers/index.ts.j2",
        "{domain}/external.handlers/index.ts",
    ),
    ArtifactKind.DOMAIN_MODULE: ArtifactTemplate(
        "domain.module.ts.j2",
        "{domain}/{domain}.domain.module.ts",
    ),
    ArtifactKind.PARENT_MODULE_EDIT: ArtifactTemplate(
        "domains.module.ts.j2",
        "{parent_module_file}",
    ),
}

_DEFAULT_FAN_OUT: dict[str, tuple[str, ...]] = {
    "command_operations": tuple(op.value for op in CommandOperation),
    "query_operations": QUERY_OPERATIONS,
}


def domain_symbols(domain: DomainName) -> dict[str, Any]:
    """Every TypeScript class/constant name generated for *domain*."""
    p = domain.pascal
    commands = {op.value: f"{to_pascal(op.value)}{p}Command" for op in CommandOperation}
    return {
        "command_classes": commands,
        "command_handlers": {op: f"{cls}Handler" for op, cls in commands.items()},
        "command_events": {
            "create": f"{p}CreatedEvent",
            "update": f"{p}UpdatedEvent",
            "delete": f"{p}DeletedEvent",
        },
        "query_classes": {
            "getById": f"Get{p}ByIdQuery",
            "list": f"List{domain.plural_pascal}Query",
        },
        "query_handlers": {
            "getById": f"Get{p}ByIdQueryHandler",
            "list": f"List{domain.plural_pascal}QueryHandler",
        },
        "event_classes": {
            "created": f"{p}CreatedEvent",
            "updated": f"{p}UpdatedEvent",
            "deleted": f"{p}DeletedEvent",
        },
        "event_handler": f"{p}CreatedActivityEventHandler",
        "saga": f"{p}ProcessingSaga",
        "handlers_const": f"{domain.constant}_HANDLERS",
        "external_handlers_const": f"{domain.constant}_EXTERNAL_HANDLERS",
        "domain_module": f"{p}DomainModule",
    }


class TemplateRegistry:
    """Maps artifact kinds to templates, target paths and barrel entries.

    All methods are deterministic: identical (kind, domain, params) inputs
    produce byte-identical output.
    """

    def __init__(
        self,
        renderer: TemplateRenderer | None = None,
        *,
        cqrs_import: str = "@app/cqrs",
        parent_module_file: str = "domains.module.ts",
        parent_module_class: str = "DomainsModule",
    ) -> None:
        self.renderer = renderer or TemplateRenderer()
        self.cqrs_import = cqrs_import
        self.parent_module_file = parent_module_file
        self.parent_module_class = parent_module_class

    @classmethod
    def from_config(cls, config: Any, renderer: TemplateRenderer | None = None) -> TemplateRegistry:
        return cls(
            renderer,
            cqrs_import=config.cqrs_import,
            parent_module_file=config.parent_module_file,
            parent_module_class=config.parent_module_class,
        )

    # -- Lookup --------------------------------------------------------------

    def kinds(self) -> list[ArtifactKind]:
        return list(_ARTIFACTS)

    def artifact(self, kind: Any) -> ArtifactTemplate:
        """Return the template spec for *kind*.

        Raises:
            UnknownArtifactKind: If *kind* is not registered.
        """
        try:
            return _ARTIFACTS[ArtifactKind(kind)]
        except (KeyError, ValueError):
            raise UnknownArtifactKind(f"No template registered for artifact kind {kind!r}", kind=kind) from None

    def paths(
        self,
        kind: ArtifactKind,
        domain: DomainName,
        params: dict[str, Any] | None = None,
    ) -> list[str]:
        """Target paths of *kind*, relative to the domains directory.

        Fan-out kinds list one path per operation in *params*, or every known
        operation when *params* does not name any.
        """
        spec = self.artifact(kind)
        return [path for path, _ in self._targets(spec, domain, params or {})]

    def anchor(self, kind: ArtifactKind, domain: DomainName) -> Optional[str]:
        """Regex locating the list literal new entries are inserted into."""
        if kind is ArtifactKind.HANDLERS_INDEX:
            return rf"export\s+const\s+{domain.constant}_HANDLERS\b[^=]*=\s*\["
        if kind is ArtifactKind.PARENT_MODULE_EDIT:
            return r"\bimports\s*:\s*\["
        return None

    # -- Rendering -----------------------------------------------------------

    def render(
        self,
        kind: ArtifactKind,
        domain: DomainName,
        params: dict[str, Any],
    ) -> list[tuple[str, str]]:
        """Render every file of *kind*.

        Returns:
            ``(path, content)`` pairs, paths relative to the domains directory.

        Raises:
            UnknownArtifactKind: If *kind* is not registered.
            MissingRequiredParam: If a required parameter is absent or empty.
        """
        spec = self.artifact(kind)
        kind = ArtifactKind(kind)
        for name in spec.required:
            if not params.get(name):
                raise MissingRequiredParam(name, kind=kind, path=spec.path.format(
                    domain=domain.name, operation="*", parent_module_file=self.parent_module_file,
                ))

        context = self._context(domain, params)
        if kind in (ArtifactKind.ACTIONS_INDEX, ArtifactKind.HANDLERS_INDEX, ArtifactKind.PARENT_MODULE_EDIT):
            context["entries"] = self.entries(kind, domain, params)

        rendered: list[tuple[str, str]] = []
        for path, operation in self._targets(spec, domain, params):
            content = self.renderer.render(spec.template, {**context, "operation": operation})
            rendered.append((path, content))
        return rendered

    def entries(
        self,
        kind: ArtifactKind,
        domain: DomainName,
        params: dict[str, Any],
    ) -> list[BarrelEntry]:
        """Entries *kind*'s aggregation file should list for this request.

        ``params["contributors"]`` names the artifact kinds taking part in the
        request; entries come back in barrel order.
        """
        symbols = domain_symbols(domain)
        contributors = set(params.get("contributors") or ())

        if kind is ArtifactKind.HANDLERS_INDEX:
            found: list[BarrelEntry] = []
            ordered = (
                ArtifactKind.SAGA,
                ArtifactKind.COMMAND_HANDLER,
                ArtifactKind.QUERY_HANDLER,
                ArtifactKind.EVENT_HANDLER,
            )
            for contributor in ordered:
                if contributor not in contributors:
                    continue
                spec = _ARTIFACTS[contributor]
                for path, operation in self._targets(spec, domain, params):
                    identifier = self._handler_symbol(contributor, symbols, operation)
                    module = "./" + posixpath.basename(path)[: -len(".ts")]
                    found.append(BarrelEntry(
                        identifier=identifier,
                        import_line=f"import {{ {identifier} }} from '{module}';",
                    ))
            return found

        if kind is ArtifactKind.ACTIONS_INDEX:
            found = []
            for contributor in (ArtifactKind.COMMAND, ArtifactKind.QUERY, ArtifactKind.EVENT):
                if contributor not in contributors:
                    continue
                path = self.paths(contributor, domain)[0]
                module = "./" + posixpath.basename(path)[: -len(".ts")]
                found.append(BarrelEntry(identifier=module, statement=f"export * from '{module}';"))
            return found

        if kind is ArtifactKind.PARENT_MODULE_EDIT:
            module_path = self.paths(ArtifactKind.DOMAIN_MODULE, domain)[0][: -len(".ts")]
            parent_dir = posixpath.dirname(self.parent_module_file) or "."
            module = posixpath.relpath(module_path, parent_dir)
            if not module.startswith("."):
                module = "./" + module
            identifier = symbols["domain_module"]
            return [BarrelEntry(
                identifier=identifier,
                import_line=f"import {{ {identifier} }} from '{module}';",
            )]

        raise UnknownArtifactKind(f"Artifact kind {kind.value!r} has no barrel entries", kind=kind)

    # -- Internals -----------------------------------------------------------

    def _targets(
        self,
        spec: ArtifactTemplate,
        domain: DomainName,
        params: dict[str, Any],
    ) -> list[tuple[str, Optional[str]]]:
        if spec.fan_out is None:
            path = spec.path.format(domain=domain.name, parent_module_file=self.parent_module_file)
            return [(path, None)]
        operations = params.get(spec.fan_out) or _DEFAULT_FAN_OUT[spec.fan_out]
        return [
            (spec.path.format(domain=domain.name, operation=op), op)
            for op in operations
        ]

    def _context(self, domain: DomainName, params: dict[str, Any]) -> dict[str, Any]:
        context: dict[str, Any] = {
            "cqrs_import": self.cqrs_import,
            "parent_module_class": self.parent_module_class,
            "security_right": None,
            "entity_type_tag": domain.name,
            "repository_token": f"{domain.constant}_REPOSITORY",
            "service_dependencies": (),
            "publish_events": False,
            "command_operations": (),
            "query_operations": QUERY_OPERATIONS,
            "saga_steps": (),
        }
        context.update({k: v for k, v in params.items() if v is not None})
        context["names"] = domain.forms()
        context["symbols"] = domain_symbols(domain)
        return context

    @staticmethod
    def _handler_symbol(kind: ArtifactKind, symbols: dict[str, Any], operation: Optional[str]) -> str:
        if kind is ArtifactKind.SAGA:
            return symbols["saga"]
        if kind is ArtifactKind.COMMAND_HANDLER:
            return symbols["command_handlers"][operation]
        if kind is ArtifactKind.QUERY_HANDLER:
            return symbols["query_handlers"][operation]
        return symbols["event_handler"]
