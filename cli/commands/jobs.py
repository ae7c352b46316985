"""Job Commands - Trigger jobs and inspect their history"""

import json

import typer
from rich.console import Console

from ..client.base import WorkerAPIError
from ..client.endpoints import WorkerClient
from ..utils.formatting import (
    create_job_panel,
    create_jobs_table,
    print_error,
    print_info,
    print_success,
    print_warning,
)

console = Console()
app = typer.Typer(name="jobs", help="Job trigger and history commands")


@app.command("trigger")
def trigger_job(
    job_type: str = typer.Argument(..., help="Job type, e.g. enrichment.batch"),
    payload: str = typer.Option("{}", "--payload", "-p", help="Job payload as JSON"),
):
    """▶ Run a job on the worker and show its outcome"""
    try:
        payload_data = json.loads(payload)
    except json.JSONDecodeError as e:
        print_error(f"Invalid JSON payload: {e}")
        raise typer.Exit(1) from None

    if not isinstance(payload_data, dict):
        print_error("Payload must be a JSON object")
        raise typer.Exit(1)

    try:
        with WorkerClient() as client:
            print_info(f"Triggering {job_type}...")
            outcome = client.trigger_job(job_type, payload_data)

            print_success(
                f"Job {outcome.get('id')} {outcome.get('status')} "
                f"in {outcome.get('durationMs')}ms"
            )
            console.print_json(data=outcome.get("result"))

    except WorkerAPIError as e:
        print_error(f"Job failed: {e}")
        raise typer.Exit(1) from None


@app.command("status")
def job_status(job_id: str = typer.Argument(..., help="Job ID")):
    """🔎 Show the record of a job"""
    try:
        with WorkerClient() as client:
            job = client.get_job_status(job_id)
            console.print(create_job_panel(job))

    except WorkerAPIError as e:
        print_error(f"Failed to get job status: {e}")
        raise typer.Exit(1) from None


@app.command("recent")
def recent_jobs(
    limit: int = typer.Option(10, "--limit", "-l", min=1, help="Jobs to show"),
):
    """📋 List the most recent jobs"""
    try:
        with WorkerClient() as client:
            jobs = client.list_recent_jobs(limit=limit)

            if not jobs:
                print_warning("No jobs recorded yet")
                return

            console.print(create_jobs_table(jobs))

    except WorkerAPIError as e:
        print_error(f"Failed to list jobs: {e}")
        raise typer.Exit(1) from None
