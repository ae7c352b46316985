import asyncio
import re
from typing import Any

import pytest
import structlog
from conftest import downstream_failure

from worker.v1.core.exceptions import HandlerFailureError, UnknownJobTypeError
from worker.v1.core.registries import JobRegistry
from worker.v1.jobs.dispatcher import Dispatcher, generate_job_id
from worker.v1.jobs.history import HistoryStore
from worker.v1.jobs.schemas import JobDescription, JobStatus


class RecordingHandler:
    def __init__(self, result: Any = None):
        self.result = result if result is not None else {"done": True}
        self.calls: list[tuple[dict[str, Any], str]] = []

    async def handle(self, payload: dict[str, Any], job_id: str) -> Any:
        self.calls.append((payload, job_id))
        return self.result


class FailingHandler:
    def __init__(self, exc: Exception):
        self.exc = exc

    async def handle(self, payload: dict[str, Any], job_id: str) -> Any:
        raise self.exc


def test_generate_job_id_format():
    """Test job ids are a millisecond timestamp plus a random suffix."""
    job_id = generate_job_id()

    assert re.fullmatch(r"job_\d{13}_[0-9a-f]{9}", job_id)
    assert generate_job_id() != job_id


@pytest.mark.asyncio
@pytest.mark.parametrize("job_type", ["nope", "enrichment", "ENRICHMENT.BATCH", " "])
async def test_unknown_job_type_fails_and_is_recorded(dispatcher, job_type):
    """Test unregistered job types fail with UnknownJobType and a failed record."""
    with pytest.raises(UnknownJobTypeError, match="Unknown job type") as exc_info:
        await dispatcher.process(JobDescription(type=job_type, payload={"a": 1}))

    assert exc_info.value.job_type == job_type
    assert exc_info.value.status_code == 400

    [record] = dispatcher.get_recent_jobs(1)
    assert record.type == job_type
    assert record.status == JobStatus.FAILED
    assert record.error == f"Unknown job type: {job_type}"
    assert record.failed_at is not None
    assert record.completed_at is None
    assert record.duration_ms >= 0
    assert record.payload == {"a": 1}


@pytest.mark.asyncio
async def test_successful_job_is_recorded_completed(dispatcher):
    """Test a successful job returns its outcome and is recorded completed."""
    payload = {"tenantId": "T1", "dateRange": "7d"}

    outcome = await dispatcher.process(
        JobDescription(type="signals.aggregate", payload=payload)
    )

    assert outcome.status == JobStatus.COMPLETED
    assert outcome.duration_ms >= 0
    assert outcome.result["tenantId"] == "T1"

    record = dispatcher.get_status(outcome.id)
    assert record.id == outcome.id
    assert record.status == JobStatus.COMPLETED
    assert record.completed_at is not None
    assert record.failed_at is None
    assert record.completed_at >= record.started_at
    assert record.duration_ms >= 0
    assert record.result == outcome.result
    assert record.error is None
    assert record.payload == payload


@pytest.mark.asyncio
async def test_handler_failure_is_recorded_and_reraised(dispatcher, fake_downstream):
    """Test a failing enrichment.single rejects with the downstream message."""
    failure = downstream_failure("enrich")
    fake_downstream.failures["L1"] = failure

    with pytest.raises(HandlerFailureError) as exc_info:
        await dispatcher.process(
            JobDescription(
                type="enrichment.single", payload={"leadId": "L1", "tenantId": "T1"}
            )
        )

    error = exc_info.value
    assert error.message == "Downstream enrich failed with status code 500"
    assert str(error) == failure.message
    assert error.__cause__ is failure
    assert error.job_type == "enrichment.single"

    record = dispatcher.get_status(error.job_id)
    assert record.status == JobStatus.FAILED
    assert record.error == failure.message
    assert record.failed_at is not None
    assert record.completed_at is None
    assert record.result is None
    assert record.duration_ms >= 0


@pytest.mark.asyncio
async def test_invalid_payload_fails_job(dispatcher):
    """Test a handler rejecting its payload marks the job failed."""
    with pytest.raises(HandlerFailureError, match="leadId is required in payload"):
        await dispatcher.process(JobDescription(type="enrichment.single"))

    [record] = dispatcher.get_recent_jobs(1)
    assert record.status == JobStatus.FAILED
    assert record.error == "leadId is required in payload"


@pytest.mark.asyncio
async def test_failure_without_message_records_exception_name():
    """Test an exception with an empty message is recorded by its class name."""
    dispatcher = Dispatcher(HistoryStore())
    dispatcher.register_handler("boom", FailingHandler(RuntimeError()))

    with pytest.raises(HandlerFailureError, match="RuntimeError"):
        await dispatcher.process(JobDescription(type="boom"))

    assert dispatcher.get_recent_jobs(1)[0].error == "RuntimeError"


@pytest.mark.asyncio
async def test_handler_receives_payload_and_job_id():
    """Test handlers are called with the payload and the generated id."""
    handler = RecordingHandler()
    dispatcher = Dispatcher(HistoryStore())
    dispatcher.register_handler("custom", handler)

    outcome = await dispatcher.process(
        JobDescription(type="custom", payload={"x": 1}, source="manual")
    )

    assert handler.calls == [({"x": 1}, outcome.id)]


@pytest.mark.asyncio
async def test_processing_record_written_before_handler_runs():
    """Test the record reads processing during execution and terminal after."""
    history = HistoryStore()
    dispatcher = Dispatcher(history)
    seen: list[JobStatus] = []

    class InspectingHandler:
        async def handle(self, payload, job_id):
            seen.append(history.get(job_id).status)
            return {"ok": True}

    dispatcher.register_handler("inspect", InspectingHandler())
    outcome = await dispatcher.process(JobDescription(type="inspect"))

    assert seen == [JobStatus.PROCESSING]
    assert dispatcher.get_status(outcome.id).status == JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_last_registration_wins():
    """Test re-registering a type replaces its handler."""
    dispatcher = Dispatcher(HistoryStore())
    dispatcher.register_handler("custom", RecordingHandler({"v": 1}))
    dispatcher.register_handler("custom", RecordingHandler({"v": 2}))

    outcome = await dispatcher.process(JobDescription(type="custom"))

    assert outcome.result == {"v": 2}
    assert dispatcher.registry.job_types() == ["custom"]


def test_frozen_registry_rejects_registration():
    """Test a frozen job table cannot be changed."""
    registry = JobRegistry()
    registry.freeze()
    dispatcher = Dispatcher(HistoryStore(), registry)

    with pytest.raises(RuntimeError, match="registry is frozen"):
        dispatcher.register_handler("custom", RecordingHandler())


@pytest.mark.asyncio
async def test_concurrent_jobs_are_tracked_independently():
    """Test many in-flight jobs each get their own id and terminal record."""
    dispatcher = Dispatcher(HistoryStore())

    class SlowEcho:
        async def handle(self, payload, job_id):
            await asyncio.sleep(0.01 * (payload["n"] % 3))
            if payload["n"] % 5 == 0:
                raise ValueError(f"bad {payload['n']}")
            return payload["n"]

    dispatcher.register_handler("echo", SlowEcho())

    results = await asyncio.gather(
        *(
            dispatcher.process(JobDescription(type="echo", payload={"n": n}))
            for n in range(1, 21)
        ),
        return_exceptions=True,
    )

    failures = [r for r in results if isinstance(r, HandlerFailureError)]
    outcomes = [r for r in results if not isinstance(r, Exception)]
    assert len(failures) == 4
    assert len(outcomes) == 16
    assert len({o.id for o in outcomes} | {f.job_id for f in failures}) == 20

    for outcome in outcomes:
        record = dispatcher.get_status(outcome.id)
        assert record.status == JobStatus.COMPLETED
        assert record.result == record.payload["n"]
    for failure in failures:
        record = dispatcher.get_status(failure.job_id)
        assert record.status == JobStatus.FAILED
        assert record.error == f"bad {record.payload['n']}"


@pytest.mark.asyncio
async def test_cancelled_job_is_recorded_failed():
    """Test cancelling an in-flight job still leaves a terminal record."""
    dispatcher = Dispatcher(HistoryStore())
    started = asyncio.Event()

    class BlockingHandler:
        async def handle(self, payload, job_id):
            started.set()
            await asyncio.Event().wait()

    dispatcher.register_handler("block", BlockingHandler())
    task = asyncio.create_task(dispatcher.process(JobDescription(type="block")))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    [record] = dispatcher.get_recent_jobs(1)
    assert record.status == JobStatus.FAILED
    assert record.error == "Job cancelled"


@pytest.mark.asyncio
async def test_history_capacity_applies_to_dispatched_jobs():
    """Test the dispatcher's history never holds more than its capacity."""
    dispatcher = Dispatcher(HistoryStore(max_size=5))
    dispatcher.register_handler("custom", RecordingHandler())

    outcomes = [
        await dispatcher.process(JobDescription(type="custom")) for _ in range(8)
    ]

    assert len(dispatcher.history) == 5
    assert [o.id in dispatcher.history for o in outcomes] == [False] * 3 + [True] * 5


@pytest.mark.asyncio
async def test_handler_runs_inside_job_log_context():
    """Test log lines emitted by a handler carry the job id and type."""
    dispatcher = Dispatcher(HistoryStore())
    seen: list[dict[str, Any]] = []

    class ContextHandler:
        async def handle(self, payload, job_id):
            seen.append(structlog.contextvars.get_contextvars())
            return None

    dispatcher.register_handler("ctx", ContextHandler())
    outcome = await dispatcher.process(JobDescription(type="ctx"))

    assert seen[0]["job_id"] == outcome.id
    assert seen[0]["job_type"] == "ctx"
    # The binding does not leak past the job
    assert "job_id" not in structlog.contextvars.get_contextvars()


@pytest.mark.asyncio
async def test_terminal_record_cannot_transition_again(dispatcher):
    """Test a record reaches a terminal state exactly once."""
    outcome = await dispatcher.process(JobDescription(type="cleanup.stale"))
    completed = dispatcher.get_status(outcome.id)

    with pytest.raises(RuntimeError, match="Invalid transition"):
        dispatcher._record_failure(completed, 0.0, "late failure")

    assert dispatcher.get_status(outcome.id).status == JobStatus.COMPLETED
