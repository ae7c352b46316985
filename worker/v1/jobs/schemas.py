"""
Job system Pydantic schemas.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class JobStatus(str, Enum):
    """Job status enumeration."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.PROCESSING


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JobDescription(CamelModel):
    """A job as delivered by Pub/Sub or the manual trigger."""

    type: str = Field(..., min_length=1, description="Job type identifier")
    payload: dict[str, Any] = Field(default_factory=dict, description="Job parameters")
    source: str | None = Field(default=None, description="Where the job came from")
    triggered_at: datetime | None = Field(
        default=None, description="When the job was requested"
    )


class JobRecord(CamelModel):
    """Lifecycle record of one job execution, as kept in the history store."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    id: str
    type: str
    status: JobStatus
    started_at: datetime
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    duration_ms: int | None = None
    result: Any = None
    error: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)

    def to_response(self) -> dict[str, Any]:
        """
        Wire form of the record.

        Only the fields of the record's state are present: a completed
        record has ``completedAt`` and ``result`` (which may be null), a
        failed one ``failedAt`` and ``error``, a processing one neither.
        """
        exclude = {"completed_at", "failed_at", "result", "error"}
        if self.status is JobStatus.COMPLETED:
            exclude -= {"completed_at", "result"}
        elif self.status is JobStatus.FAILED:
            exclude -= {"failed_at", "error"}
        if not self.status.is_terminal:
            exclude.add("duration_ms")
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)


class JobOutcome(CamelModel):
    """Value returned to the caller of a successful ``Dispatcher.process``."""

    id: str
    status: JobStatus
    duration_ms: int
    result: Any = None


class BatchItemResult(CamelModel):
    """Outcome of one lead inside a batch job."""

    lead_id: Any
    status: str
    data: Any = None
    score: Any = None
    error: str | None = None

    def to_response(self) -> dict[str, Any]:
        # Only the outcome field that was set; a null downstream body stays null
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class JobTriggerRequest(CamelModel):
    """Schema for manually triggering a job via the API."""

    job_type: str = Field(..., min_length=1, description="Job type")
    payload: dict[str, Any] = Field(default_factory=dict, description="Job payload")


class PubSubMessage(CamelModel):
    """Pub/Sub message as carried in a push request."""

    data: str | None = Field(default=None, description="Base64 encoded job JSON")
    message_id: str | None = None
    publish_time: str | None = None
    attributes: dict[str, str] = Field(default_factory=dict)


class PubSubPushRequest(BaseModel):
    """Schema of a Pub/Sub push delivery."""

    message: PubSubMessage | None = None
    subscription: str | None = None


class JobListResponse(BaseModel):
    """Schema for the recent jobs response."""

    jobs: list[dict[str, Any]]
