"""
Async HTTP client for the downstream OS service.
"""

from typing import Any

import httpx

from worker.config.logging import get_logger
from worker.config.settings import Settings, SettingsDep
from worker.v1.core.exceptions import DownstreamError

logger = get_logger(__name__)


class DownstreamClient:
    """
    Client for the service that performs enrichment, scoring, discovery and
    pipeline runs.

    Every call goes through ``POST /api/os/<operation>`` and is bounded by
    ``settings.downstream_timeout_s``.
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.base_url = settings.os_base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=settings.downstream_timeout_s,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def post(self, operation: str, body: dict[str, Any]) -> Any:
        """Call a downstream operation and return its decoded JSON body."""
        try:
            response = await self.client.post(f"/api/os/{operation}", json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.warning(
                "Downstream call rejected",
                operation=operation,
                status_code=status_code,
            )
            raise DownstreamError(
                f"Downstream {operation} failed with status code {status_code}",
                details={"operation": operation, "status_code": status_code},
            ) from e
        except httpx.RequestError as e:
            logger.warning(
                "Downstream call failed", operation=operation, error=str(e)
            )
            raise DownstreamError(
                f"Downstream {operation} request failed: {str(e) or e.__class__.__name__}",
                details={"operation": operation},
            ) from e

        try:
            return response.json()
        except ValueError as e:
            raise DownstreamError(
                f"Downstream {operation} returned invalid JSON",
                details={"operation": operation},
            ) from e

    async def health(self) -> dict[str, Any]:
        """Probe the downstream health endpoint with a short timeout."""
        response = await self.client.get(
            "/health", timeout=self.settings.health_timeout_s
        )
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        await self.client.aclose()


# Global downstream client
_downstream: DownstreamClient | None = None


def get_downstream(settings: Settings = SettingsDep) -> DownstreamClient:
    """Get or create the global downstream client."""
    global _downstream
    if _downstream is None:
        _downstream = DownstreamClient(settings)
    return _downstream


async def close_downstream() -> None:
    """Close the global downstream client, if one was created."""
    global _downstream
    if _downstream is not None:
        await _downstream.aclose()
        _downstream = None
