from collections.abc import Generator
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from worker.config.settings import Settings
from worker.infra.downstream import get_downstream
from worker.main import create_app
from worker.v1.core.exceptions import DownstreamError
from worker.v1.jobs.dispatcher import Dispatcher, get_dispatcher
from worker.v1.jobs.history import HistoryStore
from worker.v1.jobs.registry_init import build_job_registry


class FakeDownstream:
    """
    In-memory stand-in for DownstreamClient.

    Calls are recorded; keys listed in ``failures`` (lead id, pipeline id or
    query) raise the mapped exception instead of answering.
    """

    def __init__(self):
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.failures: dict[str, Exception] = {}
        self.health_body: dict[str, Any] = {"status": "ok"}
        self.health_error: Exception | None = None

    async def post(self, operation: str, body: dict[str, Any]) -> Any:
        self.calls.append((operation, body))
        key = body.get("leadId") or body.get("pipelineId") or body.get("query")
        if key in self.failures:
            raise self.failures[key]
        if operation == "score":
            return {"leadId": key, "score": 87}
        return {"operation": operation, "key": key, "ok": True}

    async def health(self) -> dict[str, Any]:
        if self.health_error is not None:
            raise self.health_error
        return self.health_body

    async def aclose(self) -> None:
        pass


def downstream_failure(operation: str = "enrich", status_code: int = 500) -> DownstreamError:
    return DownstreamError(
        f"Downstream {operation} failed with status code {status_code}",
        details={"operation": operation, "status_code": status_code},
    )


@pytest.fixture
def settings() -> Settings:
    """Test settings pointing at a fake downstream host."""
    return Settings(os_base_url="http://downstream.test", max_history=100)


@pytest.fixture
def fake_downstream() -> FakeDownstream:
    return FakeDownstream()


@pytest.fixture
def history() -> HistoryStore:
    return HistoryStore()


@pytest.fixture
def dispatcher(settings, fake_downstream, history) -> Dispatcher:
    """Dispatcher with every job handler wired to the fake downstream."""
    return Dispatcher(history, build_job_registry(settings, fake_downstream))


@pytest.fixture
def app(dispatcher, fake_downstream) -> Generator[FastAPI, None, None]:
    """Create a test FastAPI application with injected worker state."""
    app = create_app()

    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_downstream] = lambda: fake_downstream

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client."""
    with TestClient(app) as test_client:
        yield test_client
