"""
Job dispatcher: routes jobs to handlers and records their lifecycle.
"""

import asyncio
import time
import uuid
from datetime import UTC, datetime
from typing import Any

from worker.config.logging import get_logger, job_context
from worker.config.settings import Settings, SettingsDep
from worker.infra.downstream import get_downstream
from worker.v1.core.exceptions import HandlerFailureError, UnknownJobTypeError
from worker.v1.core.registries import JobHandler, JobRegistry
from worker.v1.jobs.history import HistoryStore
from worker.v1.jobs.registry_init import build_job_registry
from worker.v1.jobs.schemas import JobDescription, JobOutcome, JobRecord, JobStatus

logger = get_logger(__name__)


def generate_job_id() -> str:
    """Millisecond timestamp plus a random suffix; collisions are not guarded."""
    return f"job_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class Dispatcher:
    """
    Runs jobs through their registered handler.

    Every job gets a ``processing`` record before its handler runs and a
    terminal ``completed`` or ``failed`` record before ``process`` returns or
    raises. Failures are always recorded, then raised to the caller.
    """

    def __init__(self, history: HistoryStore, registry: JobRegistry | None = None):
        self.history = history
        self.registry = registry or JobRegistry()

    def register_handler(self, job_type: str, handler: JobHandler) -> None:
        self.registry.register(job_type, handler)

    async def process(self, job: JobDescription) -> JobOutcome:
        job_id = generate_job_id()
        started = time.perf_counter()
        record = JobRecord(
            id=job_id,
            type=job.type,
            status=JobStatus.PROCESSING,
            started_at=datetime.now(UTC),
            payload=job.payload,
        )
        self.history.put(job_id, record)

        with job_context(job_id, job.type):
            logger.info("Processing job started", source=job.source)

            try:
                handler = self.registry.get(job.type)
                result = await handler.handle(job.payload, job_id)

            except UnknownJobTypeError as e:
                self._record_failure(record, started, e.message)
                logger.warning("Processing job rejected", error=e.message)
                raise

            except asyncio.CancelledError:
                self._record_failure(record, started, "Job cancelled")
                logger.warning("Processing job cancelled")
                raise

            except Exception as e:
                message = str(e) or e.__class__.__name__
                failed = self._record_failure(record, started, message)
                logger.error(
                    "Processing job failed",
                    error=message,
                    duration_ms=failed.duration_ms,
                    exc_info=True,
                )
                raise HandlerFailureError(
                    message, job_id=job_id, job_type=job.type
                ) from e

            completed = self._record_success(record, started, result)
            logger.info(
                "Processing job completed successfully",
                duration_ms=completed.duration_ms,
            )

        return JobOutcome(
            id=job_id,
            status=JobStatus.COMPLETED,
            duration_ms=completed.duration_ms,
            result=result,
        )

    def get_status(self, job_id: str) -> JobRecord:
        return self.history.get(job_id)

    def get_recent_jobs(self, limit: int = 10) -> list[JobRecord]:
        return self.history.list_recent(limit)

    def _record_success(
        self, record: JobRecord, started: float, result: Any
    ) -> JobRecord:
        return self._transition(
            record,
            started,
            JobStatus.COMPLETED,
            completed_at=datetime.now(UTC),
            result=result,
        )

    def _record_failure(
        self, record: JobRecord, started: float, error: str
    ) -> JobRecord:
        return self._transition(
            record,
            started,
            JobStatus.FAILED,
            failed_at=datetime.now(UTC),
            error=error,
        )

    def _transition(
        self, record: JobRecord, started: float, status: JobStatus, **fields: Any
    ) -> JobRecord:
        """Write the one terminal version of a processing record."""
        if record.status.is_terminal or not status.is_terminal:
            raise RuntimeError(
                f"Invalid transition for job {record.id}: "
                f"{record.status.value} -> {status.value}"
            )
        terminal = record.model_copy(
            update={"status": status, "duration_ms": _elapsed_ms(started), **fields}
        )
        self.history.put(record.id, terminal)
        return terminal


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.perf_counter() - started) * 1000))


# Dispatcher instance management
_dispatcher_instance: Dispatcher | None = None


def get_dispatcher(settings: Settings = SettingsDep) -> Dispatcher:
    """Get or create the global dispatcher instance."""
    global _dispatcher_instance
    if _dispatcher_instance is None:
        registry = build_job_registry(settings, get_downstream(settings))
        _dispatcher_instance = Dispatcher(HistoryStore(settings.max_history), registry)
    return _dispatcher_instance
