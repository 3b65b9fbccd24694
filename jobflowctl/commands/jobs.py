"""Job Commands - per-job status"""

import typer
from rich.console import Console

from ..client.endpoints import JobflowClient, JobflowError
from ..utils.config_manager import config
from ..utils.formatting import create_job_panel, print_error

console = Console()
app = typer.Typer(name="jobs", help="Job status commands")


@app.command("show")
def show_job(
    queue: str = typer.Argument(..., help="Queue name"),
    job_id: str = typer.Argument(..., help="Job ID"),
):
    """🔍 Show one job's state, progress and outcome"""
    base_url = config.get("api.base_url")

    try:
        with JobflowClient(base_url) as client:
            job = client.job_status(queue, job_id)
            console.print(create_job_panel(job))
    except JobflowError as e:
        print_error(f"Failed to get job: {e}")
        raise typer.Exit(1) from None
