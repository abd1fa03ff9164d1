#!/usr/bin/env python3
"""Ad hoc query runner for the Meal Suggestion Orchestrator.

Run one suggestion request from the command line without a host application.

Usage:
    python query.py "Quick weeknight dinner the kids will eat"
    python query.py --budget 15 --prep 20 "Quick weeknight dinner"
    python query.py --allergen peanut --diet vegetarian "Something with noodles"
    python query.py --debug "Your prompt"    # Show the full JSON result
    python query.py --offline "Your prompt"  # Rule-based, cached and default levels only

Features:
- Builds a SuggestionRequest from flags and the prompt text
- Renders candidates and the fallback decision trail with rich
- Debug mode prints the complete OrchestrationResult as JSON
- Offline mode needs no API keys
"""

import asyncio
import sys

from rich.console import Console
from rich.table import Table

from meal_suggest.exceptions import BudgetExceeded, OrchestrationExhausted, RateLimited
from meal_suggest.models.models import Constraints, FamilyProfile, OrchestrationResult, SuggestionRequest
from meal_suggest.service import initialize_suggestion_service
from meal_suggest.utils.logger import logger

console = Console()

# Flags that take a value, mapped to (option key, converter)
VALUE_FLAGS = {
    "--budget": ("budget", float),
    "--prep": ("max_prep_minutes", int),
    "--cook": ("max_cook_minutes", int),
    "--family-size": ("family_size", int),
    "--allergen": ("allergens", str),
    "--diet": ("dietary_restrictions", str),
    "--tier": ("tier", str),
}
LIST_OPTIONS = {"allergens", "dietary_restrictions"}


def render_result(result: OrchestrationResult) -> None:
    """Print candidates and the decision trail."""
    diagnostics = result.diagnostics
    console.print(
        f"[bold green]✓ {len(result.candidates)} suggestion(s)[/bold green] "
        f"from [cyan]{diagnostics.final_level.name.lower()}[/cyan] "
        f"(quality {result.quality.overall:.2f}, {result.quality.level.value})"
    )

    table = Table(show_header=True, header_style="bold")
    table.add_column("Meal")
    table.add_column("Prep", justify="right")
    table.add_column("Cook", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Key ingredients")
    for candidate in result.candidates:
        table.add_row(
            candidate.name,
            f"{candidate.prep_minutes} min" if candidate.prep_minutes is not None else "-",
            f"{candidate.cook_minutes} min" if candidate.cook_minutes is not None else "-",
            f"${candidate.estimated_cost:.2f}" if candidate.estimated_cost is not None else "-",
            ", ".join(i.name for i in candidate.ingredients[:5]),
        )
    console.print(table)

    console.print("[bold]Decision trail[/bold]")
    for decision in diagnostics.decisions:
        mark = "[green]✓[/green]" if decision.succeeded else "[red]✗[/red]"
        console.print(f"  {mark} {decision.level.name.lower()}: {decision.reasoning}")

    for warning in diagnostics.warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")
    for suggestion in diagnostics.suggestions:
        console.print(f"[dim]• {suggestion}[/dim]")
    if diagnostics.budget_warning:
        console.print(f"[yellow]Budget: {diagnostics.budget_warning}[/yellow]")


def run_query(prompt: str, options: dict, debug: bool = False, offline: bool = False) -> None:
    """Execute a single suggestion request and print the result.

    Args:
        prompt: Prompt text passed to providers unchanged.
        options: Constraint and family options parsed from flags.
        debug: If True, display the full JSON result.
        offline: If True, run without provider levels.
    """
    service = initialize_suggestion_service(offline=offline)

    request = SuggestionRequest(
        requester_id="cli",
        requester_tier=options.get("tier", "premium"),
        prompt=prompt,
        constraints=Constraints(
            budget=options.get("budget"),
            max_prep_minutes=options.get("max_prep_minutes"),
            max_cook_minutes=options.get("max_cook_minutes"),
            servings=options.get("family_size", 4),
        ),
        family=FamilyProfile(
            family_id="cli-family",
            family_size=options.get("family_size", 4),
            allergens=options.get("allergens", []),
            dietary_restrictions=options.get("dietary_restrictions", []),
        ),
    )

    async def _run() -> OrchestrationResult:
        try:
            return await service.generate_suggestions(request, allow_free_fallback=True)
        finally:
            await service.close()

    try:
        result = asyncio.run(_run())
    except OrchestrationExhausted as e:
        console.print("[red]✗ No suggestion could be produced[/red]")
        for line in e.diagnostic_trail:
            console.print(f"  [red]✗[/red] {line}")
        sys.exit(1)
    except (BudgetExceeded, RateLimited) as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("\nQuery interrupted by user.")
        sys.exit(0)

    console.print()
    if debug:
        console.print("[bold cyan]Debug Mode: Full Result[/bold cyan]")
        console.print("[dim]" + "=" * 60 + "[/dim]")
        console.print_json(data=result.model_dump(mode="json"))
        console.print("[dim]" + "=" * 60 + "[/dim]")
        console.print()
    render_result(result)


def parse_args(argv: list) -> tuple:
    """Split argv into (prompt, options, debug, offline). Exits on malformed flags."""
    options: dict = {}
    debug_mode = False
    offline_mode = False
    index = 0

    while index < len(argv) and argv[index].startswith("--"):
        flag = argv[index]
        if flag == "--debug":
            debug_mode = True
        elif flag == "--offline":
            offline_mode = True
        elif flag in VALUE_FLAGS:
            index += 1
            if index >= len(argv):
                print(f"Error: {flag} flag requires a value")
                sys.exit(1)
            key, convert = VALUE_FLAGS[flag]
            try:
                value = convert(argv[index])
            except ValueError:
                print(f"Error: invalid value for {flag}: {argv[index]}")
                sys.exit(1)
            if key in LIST_OPTIONS:
                options.setdefault(key, []).append(value)
            else:
                options[key] = value
        else:
            print(f"Unknown flag: {flag}")
            sys.exit(1)
        index += 1

    prompt = " ".join(argv[index:]).strip()
    if not prompt:
        print("Error: prompt text is required")
        sys.exit(1)
    return prompt, options, debug_mode, offline_mode


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print('Usage: python query.py [--debug] [--offline] [--budget N] [--prep MIN] [--cook MIN] '
              '[--family-size N] [--allergen X]... [--diet X]... [--tier T] "<prompt>"')
        print("")
        print("Examples:")
        print('  python query.py "Quick weeknight dinner"')
        print('  python query.py --budget 15 --prep 20 "Quick weeknight dinner"')
        print('  python query.py --offline --allergen peanut "Something with noodles"')
        sys.exit(1)

    prompt_text, parsed_options, debug_flag, offline_flag = parse_args(sys.argv[1:])
    run_query(prompt_text, parsed_options, debug=debug_flag, offline=offline_flag)
