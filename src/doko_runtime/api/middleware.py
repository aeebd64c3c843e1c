"""Request tracking and DokoError translation for the HTTP API."""

import time
import uuid
from typing import Callable, Dict, Tuple, Type

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from doko_runtime.core.exceptions import (
    AlreadyDeployedError,
    CommandError,
    ConfigurationError,
    DokoError,
    NodeError,
    OutputParseError,
)
from doko_runtime.utils.metrics import HTTP_REQUEST_DURATION, HTTP_REQUESTS_TOTAL

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"

# First match wins, so subclasses come before their bases
ERROR_STATUS: Tuple[Tuple[Type[DokoError], int], ...] = (
    (AlreadyDeployedError, 409),
    (ConfigurationError, 400),
    (NodeError, 502),
    (CommandError, 502),
    (OutputParseError, 502),
)


def status_for(exc: DokoError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 500


def error_body(exc: DokoError) -> Dict[str, object]:
    body: Dict[str, object] = {
        "error": exc.__class__.__name__,
        "message": str(exc),
        "code": exc.code,
    }
    if isinstance(exc, CommandError):
        # Tool diagnostics (leo ECLI codes, snarkos errors) are at the end
        body["stderr"] = exc.stderr[-2000:]
    return body


def install_error_handlers(app: FastAPI) -> None:
    """Answer DokoError with a JSON body and a status matching its cause."""

    @app.exception_handler(DokoError)
    async def doko_error_handler(request: Request, exc: DokoError) -> JSONResponse:
        status = status_for(exc)
        log = logger.error if status >= 500 else logger.warning
        log("Request rejected", error=exc.__class__.__name__, code=exc.code, status_code=status)
        return JSONResponse(status_code=status, content=error_body(exc))


def install_request_tracking(app: FastAPI) -> None:
    """Tag each request with an id, log it and count it per route template."""

    @app.middleware("http")
    async def track_request(request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(request_id=request_id, method=request.method)
        start = time.time()
        status = 500

        try:
            response = await call_next(request)
            status = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            duration = time.time() - start
            # Templates keep program names and transaction ids out of the labels
            route = request.scope.get("route")
            endpoint = getattr(route, "path", "unmatched")

            HTTP_REQUESTS_TOTAL.labels(method=request.method, endpoint=endpoint, status=str(status)).inc()
            HTTP_REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(duration)
            logger.info("Request handled", path=request.url.path, status_code=status, duration_seconds=duration)

            structlog.contextvars.clear_contextvars()
