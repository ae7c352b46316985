"""Rich Formatting Utilities for CLI Output"""

import json
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

STATUS_STYLES = {
    "processing": "yellow",
    "completed": "green",
    "failed": "red",
}


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_warning(message: str):
    """Print warning message with yellow styling"""
    console.print(f"[yellow]⚠ {message}[/yellow]")


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]")


def _status_text(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def create_jobs_table(jobs: list[dict[str, Any]]) -> Table:
    """Create a formatted table for the recent jobs list"""
    table = Table(title="Recent Jobs", box=box.ROUNDED)

    table.add_column("ID", justify="left", style="cyan", no_wrap=True)
    table.add_column("Type", justify="left", style="magenta")
    table.add_column("Status", justify="center")
    table.add_column("Started", justify="left", style="white")
    table.add_column("Duration", justify="right", style="yellow")

    for job in jobs:
        duration = job.get("durationMs")
        table.add_row(
            job.get("id", ""),
            job.get("type", ""),
            _status_text(job.get("status", "")),
            job.get("startedAt", "—"),
            f"{duration}ms" if duration is not None else "—",
        )

    return table


def create_job_panel(job: dict[str, Any]) -> Panel:
    """Create formatted panel for a single job record"""
    status = job.get("status", "")
    lines = [
        f"• ID: [cyan]{job.get('id', '')}[/cyan]",
        f"• Type: [magenta]{job.get('type', '')}[/magenta]",
        f"• Status: {_status_text(status)}",
        f"• Started: {job.get('startedAt', '—')}",
    ]
    if job.get("completedAt"):
        lines.append(f"• Completed: {job['completedAt']}")
    if job.get("failedAt"):
        lines.append(f"• Failed: {job['failedAt']}")
    if job.get("durationMs") is not None:
        lines.append(f"• Duration: [yellow]{job['durationMs']}ms[/yellow]")
    if job.get("error"):
        lines.append(f"• Error: [red]{job['error']}[/red]")
    if "result" in job:
        lines.append("")
        lines.append(json.dumps(job["result"], indent=2, default=str))

    return Panel(
        "\n".join(lines),
        title="Job",
        border_style=STATUS_STYLES.get(status, "white"),
    )


def create_health_panel(health: dict[str, Any], base_url: str) -> Panel:
    """Create formatted panel for worker health"""
    downstream = health.get("downstream", {})
    history = health.get("history", {})
    ok = health.get("ok", False)

    content = (
        f"{'🚀 [green]Worker Healthy[/green]' if ok else '⚠ [yellow]Worker Degraded[/yellow]'}\n\n"
        f"• Version: [cyan]{health.get('version', 'unknown')}[/cyan]\n"
        f"• Environment: [yellow]{health.get('environment', 'unknown')}[/yellow]\n"
        f"• Downstream: {downstream.get('status', 'unknown')}\n"
        f"• History: {history.get('size', 0)}/{history.get('capacity', 0)} jobs\n"
        f"• API URL: [blue]{base_url}[/blue]"
    )

    return Panel(content, title="System Status", border_style="green" if ok else "yellow")
