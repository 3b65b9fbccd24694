"""Trigger Commands - list and fire recurring triggers"""

import typer
from rich.console import Console

from ..client.endpoints import JobflowClient, JobflowError
from ..utils.config_manager import config
from ..utils.formatting import create_triggers_table, print_error, print_success

console = Console()
app = typer.Typer(name="triggers", help="Scheduler trigger commands")


@app.command("list")
def list_triggers():
    """⏰ List triggers with their next run time"""
    base_url = config.get("api.base_url")

    try:
        with JobflowClient(base_url) as client:
            data = client.list_triggers()
    except JobflowError as e:
        print_error(f"Failed to list triggers: {e}")
        raise typer.Exit(1) from None

    console.print(create_triggers_table(data.get("triggers", [])))
    state = "[green]running[/green]" if data.get("running") else "[yellow]stopped[/yellow]"
    console.print(f"Scheduler: {state}")


@app.command("fire")
def fire(name: str = typer.Argument(..., help="Trigger name")):
    """▶ Run a trigger now"""
    base_url = config.get("api.base_url")

    try:
        with JobflowClient(base_url) as client:
            result = client.fire_trigger(name)
    except JobflowError as e:
        print_error(f"Failed to fire trigger: {e}")
        raise typer.Exit(1) from None

    if not result.get("succeeded"):
        print_error(f"Trigger '{name}' failed: {result.get('error')}")
        raise typer.Exit(1)

    print_success(f"Trigger '{name}' completed in {result.get('duration_ms', 0)} ms")
    if result.get("result") is not None:
        console.print(result["result"])
