"""
Job registry initialization.

Builds the fixed table of job type names to handlers.
"""

from worker.config.logging import get_logger
from worker.config.settings import Settings
from worker.infra.downstream import DownstreamClient
from worker.v1.core.registries import JobRegistry
from worker.v1.jobs.handlers import (
    AnalyticsAggregationHandler,
    BackgroundDiscoveryHandler,
    EnrichmentBatchHandler,
    EnrichmentSingleHandler,
    ExportGenerationHandler,
    OutreachCampaignHandler,
    ScheduledPipelineHandler,
    ScoringBatchHandler,
    SignalAggregationHandler,
    StaleCleanupHandler,
)

logger = get_logger(__name__)


def build_job_registry(settings: Settings, downstream: DownstreamClient) -> JobRegistry:
    """Create a job registry with every handler registered."""

    logger.info("Registering job handlers")
    registry = JobRegistry()

    # Handlers that call the downstream service
    registry.register(
        "enrichment.batch",
        EnrichmentBatchHandler(downstream, settings.batch_concurrency),
    )
    registry.register("enrichment.single", EnrichmentSingleHandler(downstream))
    registry.register("pipeline.scheduled", ScheduledPipelineHandler(downstream))
    registry.register(
        "scoring.batch",
        ScoringBatchHandler(downstream, settings.batch_concurrency),
    )
    registry.register("discovery.background", BackgroundDiscoveryHandler(downstream))

    # Summary handlers
    registry.register("signals.aggregate", SignalAggregationHandler())
    registry.register("outreach.campaign", OutreachCampaignHandler())
    registry.register("cleanup.stale", StaleCleanupHandler())
    registry.register("export.generate", ExportGenerationHandler())
    registry.register("analytics.aggregate", AnalyticsAggregationHandler())

    logger.info("Job handlers registered", registered_handlers=registry.job_types())
    return registry
