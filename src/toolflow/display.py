# display.py
# All terminal output for toolflow.
#
# This module owns presentation entirely. Library modules never print;
# they log, and the CLI calls named functions here.
#
# Colour language:
#   cyan    : registry and export views
#   yellow  : verification in progress / warnings
#   green   : success / passed
#   red     : failures, violations

import json
import logging

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from toolflow.models import FunctionMetadata, ToolChunk, VerificationResult

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    if len(value) > max_len:
        return value[:max_len] + "…"
    return value


def configure_logging(level: str = "INFO") -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


def verification_start(source: str, action_count: int) -> None:
    console.print()
    console.print(Rule(f"[yellow]VERIFYING {source}[/yellow]", style="yellow"))
    console.print(f"[dim yellow]  {action_count} action(s) declared[/dim yellow]")


def verification_report(result: VerificationResult) -> None:
    console.print()
    if result.valid:
        console.print(
            Panel(
                "[bold green]Workflow passed static verification.[/bold green]\n"
                "[dim]Tools, parameters, references and UI bindings are consistent.[/dim]",
                title=_label("VERIFIED ✓", "green"),
                border_style="green",
                padding=(0, 2),
            )
        )
        return

    table = Table(box=box.SIMPLE, show_header=True, header_style="bold red", padding=(0, 1))
    table.add_column("#", justify="right", width=4)
    table.add_column("Violation", style="white")
    for index, error in enumerate(result.errors, start=1):
        table.add_row(str(index), Text(error))

    console.print(
        Panel(
            table,
            title=_label("REJECTED ✗", "red"),
            subtitle=f"[dim]{len(result.errors)} violation(s)[/dim]",
            border_style="red",
            padding=(0, 1),
        )
    )


# ---------------------------------------------------------------------------
# Registry and export views
# ---------------------------------------------------------------------------


def function_table(functions: list[FunctionMetadata]) -> None:
    console.print()
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="cyan",
        show_header=True,
        header_style="bold cyan",
        padding=(0, 1),
    )
    table.add_column("Function", style="bold white")
    table.add_column("Active", justify="center", width=8)
    table.add_column("Confirm", justify="center", width=8)
    table.add_column("Description", style="white")

    for fn in functions:
        table.add_row(
            fn.name,
            "[green]✓[/green]" if fn.active else "[red]✗[/red]",
            "[yellow]![/yellow]" if fn.needs_confirmation else "",
            _mono(fn.description, 80),
        )

    console.print(
        Panel(
            table,
            title=_label("REGISTRY", "cyan"),
            subtitle=f"[dim]{len(functions)} visible function(s)[/dim]",
            border_style="cyan",
            padding=(0, 1),
        )
    )


def tool_chunks(chunks: list[ToolChunk], budget: int) -> None:
    console.print()
    console.print(Rule(f"[cyan]TOOL SCHEMA EXPORT: {len(chunks)} chunk(s), budget {budget}[/cyan]", style="cyan"))
    for index, chunk in enumerate(chunks, start=1):
        names = ", ".join(tool["function"]["name"] for tool in chunk.tools)
        size = len(json.dumps(chunk.tools, separators=(",", ":"), ensure_ascii=False))
        console.print(
            f"  [bold cyan]PART {index}[/bold cyan]  [dim]{size} chars[/dim]  [white]{names}[/white]"
        )


def tool_json(chunks: list[ToolChunk]) -> None:
    console.print_json(json.dumps([chunk.model_dump() for chunk in chunks]))


# ---------------------------------------------------------------------------
# Final states
# ---------------------------------------------------------------------------


def halt(reason: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]{escape(reason)}[/bold white]",
            title=_label("HALT", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
    console.print()
