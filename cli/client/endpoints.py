"""API Endpoint Wrappers - Type-safe API calls"""

import os
from typing import Any

from .base import APIClient

DEFAULT_API_URL = "http://localhost:8080"


class WorkerClient:
    """High-level client with typed endpoint methods"""

    def __init__(
        self,
        base_url: str | None = None,
        headers: dict[str, str] | None = None,
        timeout: int = 30,
    ):
        final_base_url = base_url or os.getenv("WORKER_API_URL", DEFAULT_API_URL)
        self.api = APIClient(base_url=final_base_url, timeout=timeout, headers=headers)

    def __enter__(self):
        self.api.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.api.__exit__(exc_type, exc_val, exc_tb)

    # Health Check
    def health_check(self) -> dict[str, Any]:
        """Check worker health; a degraded worker still reports its checks"""
        return self.api.get("/health", accept_status={503})

    # Job Endpoints
    def trigger_job(
        self, job_type: str, payload: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Run a job and wait for its outcome"""
        return self.api.post(
            "/jobs/trigger", {"jobType": job_type, "payload": payload or {}}
        )

    def get_job_status(self, job_id: str) -> dict[str, Any]:
        """Get the record of a job"""
        return self.api.get(f"/jobs/status/{job_id}")

    def list_recent_jobs(self, limit: int = 10) -> list[dict[str, Any]]:
        """List the most recent jobs"""
        return self.api.get("/jobs/recent", {"limit": limit}).get("jobs", [])
