"""Jobflow CLI - Main Entry Point"""

from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from .client.endpoints import JobflowClient, JobflowError
from .commands import cache, jobs, queues, sync, triggers
from .utils.config_manager import config as config_manager
from .utils.formatting import print_error, print_info

console = Console()

app = typer.Typer(
    name="jobflowctl",
    help="⚙️ Jobflow - job queue, scheduler and cache administration",
    rich_markup_mode="rich",
)

app.add_typer(queues.app, name="queues")
app.add_typer(jobs.app, name="jobs")
app.add_typer(cache.app, name="cache")
app.add_typer(sync.app, name="sync")
app.add_typer(triggers.app, name="triggers")


@app.command()
def status():
    """📊 Check API connectivity, database and queue depth"""
    base_url = config_manager.get("api.base_url")
    print_info(f"Checking connection to: {base_url}")

    try:
        with JobflowClient(base_url) as client:
            health = client.health_check()
    except JobflowError as e:
        print_error(f"Failed to connect: {e}")
        console.print(
            Panel(
                f"🚫 [red]Connection Failed[/red]\n\n"
                f"Make sure the Jobflow API is running at:\n"
                f"[blue]{base_url}[/blue]\n\n"
                f"Set JOBFLOW_API_URL or api.base_url in ~/.jobflow/config.yaml",
                title="Connection Error",
                border_style="red",
            )
        )
        raise typer.Exit(1) from None

    database = health.get("database") or {}
    queues_info = health.get("queues") or {}
    ok = health.get("ok", False)
    console.print(
        Panel(
            f"{'🚀 [green]Healthy[/green]' if ok else '⚠️ [red]Degraded[/red]'}\n\n"
            f"• Version: [cyan]{health.get('version', 'unknown')}[/cyan]\n"
            f"• Environment: [yellow]{health.get('environment', 'unknown')}[/yellow]\n"
            f"• Database: {'connected' if database.get('connected') else 'unreachable'}\n"
            f"• Queue depth: {queues_info.get('queue_depth', '—')}\n"
            f"• Scheduler: {'running' if health.get('scheduler_running') else 'stopped'}\n"
            f"• API URL: [blue]{base_url}[/blue]",
            title="System Status",
            border_style="green" if ok else "red",
        )
    )
    if not ok:
        raise typer.Exit(1)


def version_callback(value: bool):
    if value:
        from . import __version__

        console.print(f"Jobflow CLI v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
):
    """
    ⚙️ Jobflow CLI

    Inspect queues and jobs, manage caches, start historical syncs and
    fire scheduler triggers through the Jobflow HTTP API.
    """


if __name__ == "__main__":
    app()
