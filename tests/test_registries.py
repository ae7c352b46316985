from typing import Any

import pytest

from worker.v1.core.exceptions import UnknownJobTypeError
from worker.v1.core.registries import JobRegistry


class MockJobHandler:
    async def handle(self, payload: dict[str, Any], job_id: str) -> Any:
        return {"job_id": job_id}


def test_registry_basic_operations():
    """Test basic registry register, get, job_types operations."""
    registry = JobRegistry()
    handler = MockJobHandler()

    # Test empty registry
    assert registry.job_types() == []
    assert len(registry) == 0

    # Test register and get
    registry.register("custom.job", handler)
    assert registry.get("custom.job") is handler
    assert registry.job_types() == ["custom.job"]
    assert "custom.job" in registry


def test_registry_keeps_registration_order():
    registry = JobRegistry()

    for job_type in ["b.job", "a.job", "c.job"]:
        registry.register(job_type, MockJobHandler())

    assert registry.job_types() == ["b.job", "a.job", "c.job"]


def test_unknown_job_type():
    """Test lookup of an unregistered type raises UnknownJobTypeError."""
    registry = JobRegistry()
    registry.register("enrichment.batch", MockJobHandler())

    with pytest.raises(UnknownJobTypeError, match="Unknown job type: ENRICHMENT.BATCH"):
        registry.get("ENRICHMENT.BATCH")


def test_registry_overwrite():
    """Test registering a type twice keeps the latest handler."""
    registry = JobRegistry()
    new = MockJobHandler()

    registry.register("custom.job", MockJobHandler())
    registry.register("custom.job", new)

    assert registry.get("custom.job") is new
    assert registry.job_types() == ["custom.job"]


def test_registry_freeze():
    """Test a frozen registry rejects registration but still resolves."""
    registry = JobRegistry()
    handler = MockJobHandler()
    registry.register("custom.job", handler)

    assert registry.frozen is False
    registry.freeze()
    assert registry.frozen is True

    with pytest.raises(RuntimeError, match="job registry is frozen"):
        registry.register("other.job", MockJobHandler())
    assert registry.get("custom.job") is handler
    assert "other.job" not in registry


@pytest.mark.asyncio
async def test_registered_handler_runs():
    registry = JobRegistry()
    registry.register("custom.job", MockJobHandler())

    assert await registry.get("custom.job").handle({}, "job-1") == {"job_id": "job-1"}
