"""Command-line entry point for the CQRS scaffolder.

Usage::

    cqrs-scaffold invoice crud
    cqrs-scaffold invoice create --security-right INVOICE_WRITE
    cqrs-scaffold invoice saga --saga-step reserve:compensate --saga-step notify
    cqrs-scaffold                      # interactive mode
    python -m cqrs_scaffold.cli invoice query --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError
from rich.prompt import Confirm, Prompt

from cqrs_scaffold.config import ScaffoldConfig
from cqrs_scaffold.errors import EmissionError, ScaffoldError
from cqrs_scaffold.generator import ScaffoldGenerator
from cqrs_scaffold.models import GENERATION_TYPES, ApplyOutcome, GenerationRequest, SagaStep
from cqrs_scaffold.utils import (
    console,
    print_error,
    print_plan_table,
    print_report_table,
    print_success,
    print_warning,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cqrs-scaffold",
        description="Scaffold CQRS commands, queries, events, handlers and sagas for a domain",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  cqrs-scaffold invoice crud\n"
            "  cqrs-scaffold invoice update --security-right INVOICE_WRITE\n"
            "  cqrs-scaffold invoice saga --saga-step reserve:compensate --saga-step notify\n"
            "  cqrs-scaffold            (interactive)\n"
        ),
    )
    parser.add_argument("domain", nargs="?", help="Domain name, e.g. 'invoice'")
    parser.add_argument(
        "type",
        nargs="?",
        choices=GENERATION_TYPES,
        help="What to generate",
    )
    parser.add_argument("--root", default=None, help="Project root (default: current directory)")
    parser.add_argument("--config", default=None, help="Path to a saved JSON configuration")
    parser.add_argument("--security-right", default=None, help="Right required by command handlers")
    parser.add_argument("--entity-type", default=None, help="Entity type tag (default: domain name)")
    parser.add_argument("--repository-token", default=None, help="Repository injection token")
    parser.add_argument(
        "--saga-step",
        action="append",
        default=None,
        metavar="NAME[:compensate]",
        help="Saga step, repeatable, in execution order",
    )
    parser.add_argument(
        "--service",
        action="append",
        default=[],
        help="Extra service injected into command handlers, repeatable",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the plan without writing anything",
    )
    return parser


def load_config(args: argparse.Namespace) -> ScaffoldConfig:
    """Config file, then environment, then ``--root`` override."""
    if args.config:
        config = ScaffoldConfig.load(Path(args.config))
    else:
        config = ScaffoldConfig.from_env()
    if args.root:
        config = config.model_copy(update={"project_root": Path(args.root)})
    return config


def request_from_args(args: argparse.Namespace) -> GenerationRequest:
    saga_steps: Optional[list[SagaStep]] = None
    if args.saga_step is not None:
        saga_steps = [SagaStep.parse(spec) for spec in args.saga_step]
    return GenerationRequest.from_type(
        args.domain,
        args.type,
        security_right=args.security_right,
        entity_type_tag=args.entity_type,
        repository_token=args.repository_token,
        saga_steps=saga_steps,
        service_dependencies=args.service,
    )


def prompt_request() -> GenerationRequest:
    """Collect a request conversationally."""
    console.print("[bold cyan]CQRS scaffolder -- interactive mode[/bold cyan]")
    domain = Prompt.ask("Domain name")
    generation_type = Prompt.ask("What to generate", choices=list(GENERATION_TYPES), default="crud")

    kwargs: dict[str, Any] = {}
    if generation_type in ("crud", "create", "update", "delete"):
        kwargs["security_right"] = Prompt.ask("Security right (blank for none)", default="")
        services = Prompt.ask("Services to inject, comma-separated (blank for none)", default="")
        kwargs["service_dependencies"] = [s for s in services.split(",") if s.strip()]
    kwargs["entity_type_tag"] = Prompt.ask("Entity type tag (blank for domain name)", default="")
    kwargs["repository_token"] = Prompt.ask("Repository token (blank for default)", default="")

    if generation_type in ("crud", "saga"):
        steps: list[SagaStep] = []
        while Confirm.ask("Add a saga step?", default=generation_type == "saga" and not steps):
            name = Prompt.ask("  Step name")
            compensate = Confirm.ask("  Has a compensation step?", default=False)
            steps.append(SagaStep(name=name, has_compensation=compensate))
        if steps or generation_type == "saga":
            kwargs["saga_steps"] = steps

    return GenerationRequest.from_type(domain, generation_type, **kwargs)


def run(argv: Optional[list[str]] = None) -> int:
    """Parse arguments, generate, print the summary.  Returns the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if bool(args.domain) != bool(args.type):
        parser.error("domain and type must be given together (omit both for interactive mode)")

    try:
        config = load_config(args)
        request = prompt_request() if args.domain is None else request_from_args(args)
    except (ScaffoldError, ValidationError, OSError) as exc:
        print_error(f"Error: {exc}")
        return 1

    generator = ScaffoldGenerator(config)
    try:
        if args.dry_run:
            print_plan_table(generator.plan(request))
            return 0
        report = asyncio.run(generator.run(request))
    except EmissionError as exc:
        if exc.report is not None:
            print_report_table(exc.report)
        print_error(f"Error: {exc}")
        return 1
    except ScaffoldError as exc:
        print_error(f"Error: {exc}")
        return 1

    print_report_table(report)
    written = report.count(ApplyOutcome.CREATED) + sum(
        len(entry.merged_entries) for entry in report if entry.outcome is ApplyOutcome.MERGED
    )
    if written == 0:
        print_warning(f"Nothing to do: domain '{request.domain}' is already up to date.")
    else:
        print_success(f"Domain '{request.domain}' scaffolded.")
    return 0


def main() -> None:
    """CLI entry point for ``cqrs-scaffold`` and ``python -m cqrs_scaffold.cli``."""
    sys.exit(run())


if __name__ == "__main__":
    main()
