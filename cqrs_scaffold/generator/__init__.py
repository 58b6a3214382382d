"""CQRS domain scaffolder -- generates and merges domain artifacts.

This package takes a ``GenerationRequest`` (a domain name plus a generation
type) and renders the commands, queries, events, handlers, saga, barrels and
domain module of a CQRS domain, merging new entries into existing
aggregation files instead of overwriting them.

Quick usage::

    from cqrs_scaffold.config import ScaffoldConfig
    from cqrs_scaffold.generator import ScaffoldGenerator
    from cqrs_scaffold.models import GenerationRequest

    generator = ScaffoldGenerator(ScaffoldConfig(project_root=Path(".")))
    request = GenerationRequest.from_type("invoice", "crud")
    report = await generator.run(request)
"""

from cqrs_scaffold.generator.emitter import Emitter
from cqrs_scaffold.generator.generator import ScaffoldGenerator
from cqrs_scaffold.generator.planner import PlanBuilder
from cqrs_scaffold.generator.scanner import ExistingStructureScanner
from cqrs_scaffold.generator.templates import TemplateRegistry, TemplateRenderer

__all__ = [
    "Emitter",
    "ExistingStructureScanner",
    "PlanBuilder",
    "ScaffoldGenerator",
    "TemplateRegistry",
    "TemplateRenderer",
]
