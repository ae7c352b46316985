"""
Job API endpoints: manual trigger, Pub/Sub push delivery, status and history.
"""

import base64
import binascii
import json
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError

from worker.config.logging import get_logger
from worker.v1.core.exceptions import BadRequestError, create_success_response
from worker.v1.jobs.dispatcher import Dispatcher, get_dispatcher
from worker.v1.jobs.schemas import (
    JobDescription,
    JobListResponse,
    JobTriggerRequest,
    PubSubPushRequest,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/jobs", tags=["jobs"])
pubsub_router = APIRouter(prefix="/pubsub", tags=["pubsub"])


@router.post("/trigger", response_model=dict)
async def trigger_job(
    request: JobTriggerRequest,
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Run a job immediately and return its outcome."""

    job = JobDescription(
        type=request.job_type,
        payload=request.payload,
        source="manual",
        triggered_at=datetime.now(UTC),
    )
    outcome = await dispatcher.process(job)

    logger.info("Job triggered via API", job_id=outcome.id, type=job.type)

    return create_success_response(
        data=outcome.model_dump(mode="json", by_alias=True)
    )


@router.get("/status/{job_id}", response_model=dict)
async def get_job_status(
    job_id: str,
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Get the latest record of a job."""

    record = dispatcher.get_status(job_id)
    return create_success_response(data=record.to_response())


@router.get("/recent", response_model=dict)
async def list_recent_jobs(
    limit: int = Query(default=10, ge=1, description="Maximum results"),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """List the most recently started jobs, newest first."""

    capacity = dispatcher.history.capacity
    if limit > capacity:
        raise BadRequestError(
            f"limit must not exceed the history capacity of {capacity}",
            details={"limit": limit, "capacity": capacity},
        )

    records = dispatcher.get_recent_jobs(limit)
    response_data = JobListResponse(jobs=[r.to_response() for r in records])
    return create_success_response(data=response_data.model_dump())


@pubsub_router.post("/push", response_model=dict)
async def pubsub_push(
    push: PubSubPushRequest,
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """
    Receive a Pub/Sub push delivery.

    A 2xx response acknowledges the message; any error response makes
    Pub/Sub redeliver it.
    """

    if push.message is None or not push.message.data:
        raise BadRequestError("Invalid Pub/Sub message")

    job = decode_push_message(push.message.data)
    logger.info(
        "Received job",
        type=job.type,
        message_id=push.message.message_id,
        subscription=push.subscription,
    )

    outcome = await dispatcher.process(job)
    return create_success_response(data={"success": True, "jobId": outcome.id})


def decode_push_message(data: str) -> JobDescription:
    """Decode a base64 encoded JSON job description."""
    try:
        raw = base64.b64decode(data, validate=True)
        return JobDescription.model_validate(json.loads(raw))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise BadRequestError(
            "Invalid Pub/Sub message", details={"reason": str(e)}
        ) from None
    except ValidationError as e:
        raise BadRequestError(
            "Invalid job description",
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from None
