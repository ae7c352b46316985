"""
Job handlers for the pipeline worker.

This module contains job handlers that implement the JobHandler protocol
and are registered in the job registry by ``build_job_registry``.

Handlers that iterate over independent leads isolate each lead's failure
inside the batch result. Single-unit handlers let failures propagate so the
dispatcher records the job as failed.

Log lines carry ``job_id`` and ``job_type`` from the dispatcher's log context.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta
from typing import Any

from worker.config.logging import get_logger
from worker.infra.downstream import DownstreamClient
from worker.v1.jobs.schemas import BatchItemResult

logger = get_logger(__name__)

SIGNAL_CATEGORIES = ["hiring", "funding", "expansion", "leadership"]
ANALYTICS_METRICS = ["leadsDiscovered", "leadsEnriched", "leadsScored", "outreachSent"]


def _require(payload: dict[str, Any], field: str) -> Any:
    value = payload.get(field)
    if value is None or value == "":
        raise ValueError(f"{field} is required in payload")
    return value


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class LeadBatchHandler(ABC):
    """
    Base class for handlers that fan out one downstream call per lead.

    Payload expected:
    {
        "leadIds": ["lead-1", "lead-2"],
        "tenantId": "tenant-id"
    }

    Lead ids are passed through unchanged. Leads run in chunks of
    ``concurrency``; results keep the input order.
    """

    name = "batch"

    def __init__(self, downstream: DownstreamClient, concurrency: int = 1):
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got: {concurrency}")
        self.downstream = downstream
        self.concurrency = concurrency

    async def handle(self, payload: dict[str, Any], job_id: str) -> dict[str, Any]:
        lead_ids = payload.get("leadIds") or []
        if not isinstance(lead_ids, list):
            raise ValueError(
                f"leadIds must be a list, got: {type(lead_ids).__name__}"
            )

        logger.info("Starting batch job", handler=self.name, lead_count=len(lead_ids))

        results: list[BatchItemResult] = []
        for start in range(0, len(lead_ids), self.concurrency):
            chunk = lead_ids[start : start + self.concurrency]
            results.extend(
                await asyncio.gather(
                    *(self._run_item(lead_id, payload) for lead_id in chunk)
                )
            )

        failed = sum(1 for r in results if r.status == "failed")
        logger.info(
            "Batch job finished",
            handler=self.name,
            processed=len(results),
            failed=failed,
        )

        return {
            "processed": len(results),
            "results": [r.to_response() for r in results],
        }

    async def _run_item(
        self, lead_id: Any, payload: dict[str, Any]
    ) -> BatchItemResult:
        try:
            return await self.process_lead(lead_id, payload)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.warning(
                "Batch item failed", handler=self.name, lead_id=lead_id, error=error
            )
            return BatchItemResult(lead_id=lead_id, status="failed", error=error)

    @abstractmethod
    async def process_lead(
        self, lead_id: Any, payload: dict[str, Any]
    ) -> BatchItemResult:
        """Make the downstream call for one lead."""


class EnrichmentBatchHandler(LeadBatchHandler):
    """Enrich every lead in ``leadIds``."""

    name = "enrichment.batch"

    async def process_lead(
        self, lead_id: Any, payload: dict[str, Any]
    ) -> BatchItemResult:
        data = await self.downstream.post(
            "enrich",
            {
                "leadId": lead_id,
                "tenantId": payload.get("tenantId"),
                "source": "worker-batch",
            },
        )
        return BatchItemResult(lead_id=lead_id, status="enriched", data=data)


class ScoringBatchHandler(LeadBatchHandler):
    """
    Score every lead in ``leadIds``.

    Extra payload field: "vertical" (optional), forwarded to the scorer.
    """

    name = "scoring.batch"

    async def process_lead(
        self, lead_id: Any, payload: dict[str, Any]
    ) -> BatchItemResult:
        data = await self.downstream.post(
            "score",
            {
                "leadId": lead_id,
                "tenantId": payload.get("tenantId"),
                "vertical": payload.get("vertical"),
                "source": "worker-batch",
            },
        )
        score = data.get("score") if isinstance(data, dict) else None
        return BatchItemResult(lead_id=lead_id, status="scored", score=score)


class EnrichmentSingleHandler:
    """
    Enrich a single lead.

    Payload expected:
    {
        "leadId": "lead-id",
        "tenantId": "tenant-id"
    }
    """

    def __init__(self, downstream: DownstreamClient):
        self.downstream = downstream

    async def handle(self, payload: dict[str, Any], job_id: str) -> Any:
        lead_id = _require(payload, "leadId")
        logger.info("Enriching lead", lead_id=lead_id)

        return await self.downstream.post(
            "enrich",
            {
                "leadId": lead_id,
                "tenantId": payload.get("tenantId"),
                "source": "worker-single",
            },
        )


class ScheduledPipelineHandler:
    """
    Run a named pipeline on the downstream service.

    Payload expected:
    {
        "pipelineId": "pipeline-id",
        "tenantId": "tenant-id",
        "config": {...}  # optional
    }
    """

    def __init__(self, downstream: DownstreamClient):
        self.downstream = downstream

    async def handle(self, payload: dict[str, Any], job_id: str) -> Any:
        pipeline_id = _require(payload, "pipelineId")
        logger.info("Running scheduled pipeline", pipeline_id=pipeline_id)

        return await self.downstream.post(
            "pipeline",
            {
                "pipelineId": pipeline_id,
                "tenantId": payload.get("tenantId"),
                "config": payload.get("config"),
                "source": "scheduled-worker",
            },
        )


class BackgroundDiscoveryHandler:
    """
    Run a discovery query in the background.

    Payload expected:
    {
        "query": "search terms",
        "tenantId": "tenant-id",
        "sources": ["news", "jobs"]  # optional
    }
    """

    def __init__(self, downstream: DownstreamClient):
        self.downstream = downstream

    async def handle(self, payload: dict[str, Any], job_id: str) -> Any:
        query = _require(payload, "query")
        logger.info("Running background discovery", query=query)

        return await self.downstream.post(
            "discovery",
            {
                "query": query,
                "tenantId": payload.get("tenantId"),
                "sources": payload.get("sources"),
                "background": True,
            },
        )


class SignalAggregationHandler:
    """Summarise signal aggregation for a tenant."""

    async def handle(self, payload: dict[str, Any], job_id: str) -> dict[str, Any]:
        tenant_id = payload.get("tenantId")
        logger.info("Aggregating signals", tenant_id=tenant_id)

        return {
            "tenantId": tenant_id,
            "dateRange": payload.get("dateRange"),
            "aggregatedAt": _now_iso(),
            "signalsProcessed": 0,
            "categories": list(SIGNAL_CATEGORIES),
        }


class OutreachCampaignHandler:
    async def handle(self, payload: dict[str, Any], job_id: str) -> dict[str, Any]:
        campaign_id = payload.get("campaignId")
        recipients = payload.get("recipients") or []
        logger.info("Queueing outreach campaign", campaign_id=campaign_id)

        return {
            "campaignId": campaign_id,
            "recipientsProcessed": len(recipients),
            "status": "queued",
            "estimatedDelivery": (datetime.now(UTC) + timedelta(hours=1)).isoformat(),
        }


class StaleCleanupHandler:
    async def handle(self, payload: dict[str, Any], job_id: str) -> dict[str, Any]:
        older_than = payload.get("olderThan")
        logger.info("Cleaning up stale data", older_than=older_than)

        return {
            "tenantId": payload.get("tenantId"),
            "olderThan": older_than,
            "cleanedAt": _now_iso(),
            "recordsRemoved": 0,
            "storageReclaimed": "0.00MB",
        }


class ExportGenerationHandler:
    async def handle(self, payload: dict[str, Any], job_id: str) -> dict[str, Any]:
        export_type = payload.get("exportType")
        logger.info("Starting export", export_type=export_type)

        return {
            "exportId": f"export_{int(time.time() * 1000)}",
            "type": export_type,
            "status": "generating",
            "estimatedRows": 0,
            # Populated once the export is ready
            "downloadUrl": None,
        }


class AnalyticsAggregationHandler:
    """
    Summarise pipeline metrics for a period.

    Payload expected:
    {
        "period": "2024-01",
        "metrics": ["leadsEnriched"]  # optional, defaults to all metrics
    }
    """

    async def handle(self, payload: dict[str, Any], job_id: str) -> dict[str, Any]:
        period = payload.get("period")
        requested = payload.get("metrics") or ANALYTICS_METRICS
        logger.info("Aggregating analytics", period=period)

        return {
            "period": period,
            "aggregatedAt": _now_iso(),
            "metrics": {name: 0 for name in requested if name in ANALYTICS_METRICS},
        }
