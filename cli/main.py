"""Pipeline Worker CLI - Main Entry Point"""

from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from .client.base import WorkerAPIError
from .client.endpoints import WorkerClient
from .commands import jobs
from .utils.formatting import create_health_panel, print_error, print_info

console = Console()

# Create main Typer app
app = typer.Typer(
    name="workerctl",
    help="⚙ Pipeline Worker - job trigger and inspection CLI",
    rich_markup_mode="rich",
)

# Add command subapps
app.add_typer(jobs.app, name="jobs")


@app.command()
def status():
    """📊 Check worker health and connectivity"""
    with WorkerClient() as client:
        base_url = client.api.base_url
        print_info(f"Checking connection to: {base_url}")

        try:
            health = client.health_check()
        except WorkerAPIError as e:
            print_error(f"Failed to connect: {e}")
            console.print(Panel(
                f"🚫 [red]Connection Failed[/red]\n\n"
                f"Make sure the worker is running at:\n"
                f"[blue]{base_url}[/blue]\n\n"
                f"You can point the CLI elsewhere with:\n"
                f"[cyan]export WORKER_API_URL=<url>[/cyan]",
                title="Connection Error",
                border_style="red"
            ))
            raise typer.Exit(1) from None

    console.print(create_health_panel(health, base_url))
    if not health.get("ok", False):
        raise typer.Exit(1)


@app.command()
def version():
    """📎 Show CLI version information"""
    from . import __version__

    console.print(Panel(
        f"⚙ [bold cyan]Pipeline Worker CLI[/bold cyan]\n\n"
        f"• Version: [green]{__version__}[/green]\n"
        f"• Type: [yellow]Command Line Interface[/yellow]",
        title="Version Info",
        border_style="cyan"
    ))


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None, "--version", "-v", help="Show version and exit"
    ),
):
    """
    ⚙ Pipeline Worker CLI

    Trigger jobs on a running worker, inspect job records and check health.
    """
    if version:
        from . import __version__
        console.print(f"Pipeline Worker CLI v{__version__}")
        raise typer.Exit()


if __name__ == "__main__":
    app()
