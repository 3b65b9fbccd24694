"""Cache Commands - stats, flush and key eviction"""

import typer
from rich.console import Console

from ..client.endpoints import JobflowClient, JobflowError
from ..utils.config_manager import config
from ..utils.formatting import (
    create_cache_stats_table,
    create_flush_table,
    print_error,
    print_success,
    print_warning,
)

console = Console()
app = typer.Typer(name="cache", help="Cache administration commands")


@app.command("stats")
def show_stats(
    name: str | None = typer.Argument(None, help="Cache name, all caches when omitted"),
):
    """📈 Show hit/miss counters and key counts"""
    base_url = config.get("api.base_url")

    try:
        with JobflowClient(base_url) as client:
            console.print(create_cache_stats_table(client.cache_stats(name)))
    except JobflowError as e:
        print_error(f"Failed to get cache stats: {e}")
        raise typer.Exit(1) from None


@app.command("clear")
def clear(
    name: str | None = typer.Argument(None, help="Cache name, all caches when omitted"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """🧹 Flush one cache or every cache"""
    target = f"cache '{name}'" if name else "ALL caches"
    if not yes and not typer.confirm(f"Clear {target}?"):
        raise typer.Exit(0)

    base_url = config.get("api.base_url")
    try:
        with JobflowClient(base_url) as client:
            outcomes = client.clear_cache(name)
    except JobflowError as e:
        print_error(f"Failed to clear cache: {e}")
        raise typer.Exit(1) from None

    console.print(create_flush_table(outcomes))
    failed = [n for n, o in outcomes.items() if not o.get("success")]
    if failed:
        print_warning(f"Some caches failed to clear: {', '.join(failed)}")
        raise typer.Exit(1)
    print_success(f"Cleared {target}")


@app.command("delete-key")
def delete_key(
    name: str = typer.Argument(..., help="Cache name"),
    key: str = typer.Argument(..., help="Key to evict"),
):
    """🗑 Evict a single key"""
    base_url = config.get("api.base_url")

    try:
        with JobflowClient(base_url) as client:
            result = client.delete_cache_key(name, key)
    except JobflowError as e:
        print_error(f"Failed to delete key: {e}")
        raise typer.Exit(1) from None

    if result.get("deleted"):
        print_success(f"Deleted '{key}' from {name}")
    else:
        print_warning(f"Key '{key}' was not in {name}")
