from typing import Any, Protocol

from worker.v1.core.exceptions import UnknownJobTypeError


class JobHandler(Protocol):
    """Protocol for job handlers that process one job type."""

    async def handle(self, payload: dict[str, Any], job_id: str) -> Any:
        """
        Handle a job.

        Args:
            payload: Job-specific parameters
            job_id: Identifier assigned to the job by the dispatcher

        Returns:
            Result stored with the completed job record

        Raises:
            Exception: any failure marks the job as failed
        """
        ...


class JobRegistry:
    """
    Table of job type names to handlers.

    Lookups are exact and case-sensitive. Once frozen the table is read-only;
    the app freezes it outside development so the set of job types a running
    worker accepts cannot change.
    """

    def __init__(self):
        self._handlers: dict[str, JobHandler] = {}
        self._frozen = False

    def register(self, job_type: str, handler: JobHandler) -> None:
        """Register a handler; a later registration replaces an earlier one."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot register job type '{job_type}': job registry is frozen"
            )
        self._handlers[job_type] = handler

    def get(self, job_type: str) -> JobHandler:
        try:
            return self._handlers[job_type]
        except KeyError:
            raise UnknownJobTypeError(job_type) from None

    def job_types(self) -> list[str]:
        """Registered job types in registration order."""
        return list(self._handlers)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, job_type: object) -> bool:
        return job_type in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
