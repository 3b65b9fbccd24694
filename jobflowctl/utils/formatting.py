"""Rich formatting helpers for CLI output"""

from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

STATE_STYLES = {
    "waiting": "yellow",
    "active": "cyan",
    "completed": "green",
    "failed": "red",
}


def print_success(message: str):
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    console.print(f"[red]✗ {message}[/red]")


def print_warning(message: str):
    console.print(f"[yellow]⚠ {message}[/yellow]")


def print_info(message: str):
    console.print(f"[blue]ℹ {message}[/blue]")


def create_queue_counts_table(counts: dict[str, dict[str, Any]]) -> Table:
    table = Table(title="Queues", box=box.ROUNDED)

    table.add_column("Queue", justify="left", style="cyan", no_wrap=True)
    for column, style in (
        ("Waiting", "yellow"),
        ("Delayed", "magenta"),
        ("Active", "cyan"),
        ("Completed", "green"),
        ("Failed", "red"),
        ("Total", "bold"),
    ):
        table.add_column(column, justify="right", style=style)

    for name, c in counts.items():
        table.add_row(
            name,
            str(c.get("waiting", 0)),
            str(c.get("delayed", 0)),
            str(c.get("active", 0)),
            str(c.get("completed", 0)),
            str(c.get("failed", 0)),
            str(c.get("total", 0)),
        )

    return table


def create_job_panel(job: dict[str, Any]) -> Panel:
    state = job.get("state", "unknown")
    style = STATE_STYLES.get(state, "white")

    lines = [
        f"• Job: [cyan]{job.get('job_id')}[/cyan]",
        f"• Queue: {job.get('queue_name', '—')}  Kind: {job.get('kind', '—')}",
        f"• State: [{style}]{state}[/{style}]",
        f"• Attempts: {job.get('attempts', 0)}/{job.get('max_attempts', '—')}",
    ]
    if job.get("progress") is not None:
        lines.append(f"• Progress: {job['progress']}")
    if job.get("processed_on"):
        lines.append(f"• Processed: {job['processed_on']}")
    if job.get("finished_on"):
        lines.append(f"• Finished: {job['finished_on']}")
    if job.get("result") is not None:
        lines.append(f"• Result: [green]{job['result']}[/green]")
    if job.get("error"):
        lines.append(f"• Error: [red]{job['error']}[/red] ({job.get('error_code')})")

    return Panel("\n".join(lines), title="Job Status", border_style=style)


def create_cache_stats_table(stats: dict[str, dict[str, Any]]) -> Table:
    table = Table(title="Caches", box=box.ROUNDED)

    table.add_column("Cache", justify="left", style="cyan", no_wrap=True)
    table.add_column("Keys", justify="right")
    table.add_column("Hits", justify="right", style="green")
    table.add_column("Misses", justify="right", style="yellow")
    table.add_column("Max Size", justify="right")
    table.add_column("TTL (s)", justify="right")

    for name, s in stats.items():
        table.add_row(
            name,
            str(s.get("key_count", 0)),
            str(s.get("hits", 0)),
            str(s.get("misses", 0)),
            str(s.get("max_size", "—")),
            str(s.get("ttl_s", "—")),
        )

    return table


def create_flush_table(outcomes: dict[str, dict[str, Any]]) -> Table:
    table = Table(title="Cache Flush", box=box.ROUNDED)

    table.add_column("Cache", style="cyan")
    table.add_column("Result", justify="center")
    table.add_column("Message")

    for name, outcome in outcomes.items():
        ok = outcome.get("success", False)
        table.add_row(name, "[green]ok[/green]" if ok else "[red]failed[/red]", outcome.get("message", ""))

    return table


def create_triggers_table(triggers: list[dict[str, Any]]) -> Table:
    table = Table(title="Triggers", box=box.ROUNDED)

    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Cron", style="magenta")
    table.add_column("Timezone")
    table.add_column("Next Run", style="yellow")
    table.add_column("Description")

    for t in triggers:
        table.add_row(
            t.get("name", ""),
            t.get("cron", ""),
            t.get("timezone", ""),
            t.get("next_run_at") or "—",
            t.get("description", ""),
        )

    return table
