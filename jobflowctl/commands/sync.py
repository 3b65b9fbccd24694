"""Sync Commands - historical import"""

import typer
from rich.console import Console

from ..client.endpoints import JobflowClient, JobflowError
from ..utils.config_manager import config
from ..utils.formatting import create_job_panel, print_error, print_info, print_success

console = Console()
app = typer.Typer(name="sync", help="Historical sync commands")


@app.command("historical")
def start_historical(brand_id: str = typer.Argument(..., help="Brand ID")):
    """⏳ Start a historical order sync for a brand"""
    base_url = config.get("api.base_url")

    try:
        with JobflowClient(base_url) as client:
            started = client.start_historical_sync(brand_id)
    except JobflowError as e:
        print_error(f"Failed to start sync: {e}")
        raise typer.Exit(1) from None

    if started.get("deduplicated"):
        print_info(f"A sync for {started.get('brand')} is already in progress")
    else:
        print_success(f"Historical sync started for {started.get('brand')}")
    console.print(f"Job ID: [cyan]{started.get('job_id')}[/cyan]")


@app.command("status")
def status(job_id: str = typer.Argument(..., help="Job ID returned by 'sync historical'")):
    """🔍 Show a historical sync's progress"""
    base_url = config.get("api.base_url")

    try:
        with JobflowClient(base_url) as client:
            console.print(create_job_panel(client.sync_status(job_id)))
    except JobflowError as e:
        print_error(f"Failed to get sync status: {e}")
        raise typer.Exit(1) from None
