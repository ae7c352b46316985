import time
import uuid
from datetime import UTC, datetime
from typing import Any

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from worker.config.logging import add_request_context, current_request_id, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
PUBSUB_PUSH_PATH = "/v1/pubsub/push"


class WorkerException(Exception):
    """Base exception for the pipeline worker."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class BadRequestError(WorkerException):
    """Raised when an inbound request or message cannot be decoded."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, details)


class NotFoundError(WorkerException):
    """Raised when a resource is not found."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)


class UnknownJobTypeError(WorkerException):
    """Raised when no handler is registered for a job type."""

    def __init__(self, job_type: str):
        self.job_type = job_type
        super().__init__(
            f"Unknown job type: {job_type}",
            status.HTTP_400_BAD_REQUEST,
            {"job_type": job_type},
        )


class HandlerFailureError(WorkerException):
    """
    Raised by the dispatcher when a job handler fails.

    The message is the underlying failure's message; the original exception
    is available as ``__cause__``.
    """

    def __init__(self, message: str, job_id: str, job_type: str):
        self.job_id = job_id
        self.job_type = job_type
        super().__init__(
            message,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            {"job_id": job_id, "job_type": job_type},
        )


class DownstreamError(WorkerException):
    """Raised when a call to the downstream service fails."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_502_BAD_GATEWAY, details)


def _envelope(ok: bool, request_id: str | None, **body: Any) -> dict[str, Any]:
    return {
        "ok": ok,
        **body,
        "request_id": request_id or current_request_id(),
        "timestamp": datetime.now(UTC).isoformat(),
    }


def create_error_response(
    status_code: int,
    message: str,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Error envelope: ``{ok: false, error: {message, code, details}}``."""
    return _envelope(
        False,
        request_id,
        error={"message": message, "code": status_code, "details": details or {}},
    )


def create_success_response(
    data: Any, message: str | None = None, request_id: str | None = None
) -> dict[str, Any]:
    """Success envelope; the request id defaults to the one in the log context."""
    return _envelope(True, request_id, data=data, message=message)


def _error_json(
    request: Request,
    status_code: int,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
    return JSONResponse(
        status_code=status_code,
        content=create_error_response(status_code, message, details, request_id),
    )


def _redelivery(request: Request) -> dict[str, Any]:
    # Pub/Sub redelivers any push that gets a non-2xx response
    return {"redelivery": True} if request.url.path == PUBSUB_PUSH_PATH else {}


async def worker_exception_handler(
    request: Request, exc: WorkerException
) -> JSONResponse:
    """Render worker exceptions; failed Pub/Sub pushes are logged as redeliveries."""
    fields: dict[str, Any] = {
        "exception": exc.__class__.__name__,
        "error": exc.message,
        "status_code": exc.status_code,
    }
    if isinstance(exc, HandlerFailureError):
        fields.update(
            job_id=exc.job_id,
            job_type=exc.job_type,
            cause=exc.__cause__.__class__.__name__ if exc.__cause__ else None,
        )
    elif isinstance(exc, UnknownJobTypeError):
        fields["job_type"] = exc.job_type
    elif exc.details:
        fields["details"] = exc.details
    fields.update(_redelivery(request))

    if exc.status_code >= 500:
        logger.error("Job request failed", **fields)
    else:
        logger.warning("Job request rejected", **fields)

    return _error_json(request, exc.status_code, exc.message, exc.details)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request body and query validation errors in the error envelope."""
    errors = jsonable_encoder(exc.errors())
    logger.warning(
        "Request validation failed",
        errors=[".".join(str(part) for part in e["loc"]) for e in errors],
        **_redelivery(request),
    )
    return _error_json(
        request,
        422,
        "Request validation failed",
        {"errors": errors},
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Render framework HTTP errors (unknown route, wrong method)."""
    logger.warning("HTTP exception", status_code=exc.status_code, detail=exc.detail)
    return _error_json(request, exc.status_code, str(exc.detail))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(
        "Unhandled exception",
        exception=exc.__class__.__name__,
        error=str(exc),
        **_redelivery(request),
        exc_info=True,
    )
    return _error_json(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Give each request a correlation id and a fresh log context.

    An inbound ``X-Request-ID`` is reused so a caller can follow a job
    through the worker's logs; otherwise one is generated.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        add_request_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        started = time.perf_counter()
        response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.debug(
            "Request handled",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response
