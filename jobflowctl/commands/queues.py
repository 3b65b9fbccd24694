"""Queue Commands - job counts per queue"""

import typer
from rich.console import Console

from ..client.endpoints import JobflowClient, JobflowError
from ..utils.config_manager import config
from ..utils.formatting import create_queue_counts_table, print_error

console = Console()
app = typer.Typer(name="queues", help="Queue inspection commands")


@app.command("counts")
def show_counts(
    name: str | None = typer.Argument(None, help="Queue name, all queues when omitted"),
):
    """📊 Show waiting/active/completed/failed/delayed counts"""
    base_url = config.get("api.base_url")

    try:
        with JobflowClient(base_url) as client:
            counts = client.queue_counts(name)
            console.print(create_queue_counts_table(counts))
    except JobflowError as e:
        print_error(f"Failed to get queue counts: {e}")
        raise typer.Exit(1) from None
