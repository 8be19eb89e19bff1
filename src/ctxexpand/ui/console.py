"""Rich-powered console output for ctxexpand."""

from __future__ import annotations

from rich.console import Console as RichConsole
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ctxexpand import __version__
from ctxexpand.context.models import ExpandedResult, TokenEstimator


class Console:
    """Terminal output for ctxexpand using Rich."""

    def __init__(self) -> None:
        self.console = RichConsole()

    def banner(self) -> None:
        """Show the ctxexpand banner."""
        self.console.print(
            Panel(
                f"[bold cyan]ctxexpand[/bold cyan] [dim]v{__version__}[/dim]\n"
                "[dim]Hierarchical context for knowledge-graph search results[/dim]",
                border_style="cyan",
                padding=(1, 2),
            )
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]![/yellow] {message}")

    def info(self, message: str) -> None:
        self.console.print(f"[blue]i[/blue] {message}")

    def show_stats(self, stats: dict) -> None:
        """Display hierarchy store statistics."""
        table = Table(title="Hierarchy Statistics", border_style="cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Count", justify="right", style="cyan")

        table.add_row("Pages", str(stats.get("containers", 0)))
        table.add_row("Blocks", str(stats.get("nodes", 0)))
        table.add_row("Parent/child edges", str(stats.get("edges", 0)))

        self.console.print(table)

    def show_expansion(self, results: list[ExpandedResult], budget: int | None) -> None:
        """Summarize an expansion: per-result lengths and overall budget use."""
        table = Table(title="Context Expansion", border_style="cyan")
        table.add_column("Id", style="bold")
        table.add_column("Kind")
        table.add_column("Original", justify="right")
        table.add_column("Expanded", justify="right", style="cyan")
        table.add_column("Truncated", justify="center")

        for r in results:
            rid, kind, original, final, truncated = r.summary_row()
            table.add_row(
                Text(rid),
                "metadata" if r.is_metadata_only else kind,
                str(original),
                str(final),
                "[yellow]yes[/yellow]" if truncated else "",
            )
        self.console.print(table)

        total = sum(len(r.content) for r in results)
        tokens = sum(TokenEstimator.estimate(r.content) for r in results if r.content)
        budget_str = f"{budget:,}" if budget is not None else "unbounded"
        self.console.print(
            f"  Total: {total:,} chars (~{tokens:,} tokens) "
            f"/ budget {budget_str}"
        )

    def show_texts(self, results: list[ExpandedResult]) -> None:
        """Print the expanded text of every result."""
        for r in results:
            title = r.id or r.title
            self.console.print(
                Panel(Text(r.content or "(empty)"), title=Text(title, style="bold"), border_style="blue"),
            )
