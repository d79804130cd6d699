import json
import logging
import os
import time
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Awaitable, Callable, NamedTuple, Optional
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.datastructures import Headers
from prometheus_fastapi_instrumentator import Instrumentator

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
trace_id_var: ContextVar[str] = ContextVar("trace_id", default="")

_CONTEXT_FIELDS = (
    ("correlation_id", correlation_id_var),
    ("request_id", request_id_var),
    ("trace_id", trace_id_var),
)
_UNMETERED_HANDLERS = ["/metrics", "/health.*"]


class RequestIds(NamedTuple):
    correlation_id: str
    request_id: str
    trace_id: str

    @classmethod
    def from_headers(cls, headers: Headers) -> "RequestIds":
        return cls(
            correlation_id=headers.get("X-Correlation-Id") or f"corr_{uuid4().hex[:12]}",
            request_id=headers.get("X-Request-Id") or f"req_{uuid4().hex[:12]}",
            trace_id=_parent_trace_id(headers.get("traceparent")) or uuid4().hex,
        )

    def response_headers(self) -> dict[str, str]:
        return {
            "X-Correlation-Id": self.correlation_id,
            "X-Request-Id": self.request_id,
            "X-Trace-Id": self.trace_id,
            "traceparent": f"00-{self.trace_id}-0000000000000001-01",
        }


def _parent_trace_id(traceparent: Optional[str]) -> Optional[str]:
    # version-traceid-parentid-flags
    parts = (traceparent or "").split("-")
    if len(parts) >= 4 and len(parts[1]) == 32:
        return parts[1]
    return None


class JsonFormatter(logging.Formatter):
    """One JSON object per line; `extra_fields` on the record are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "service": os.getenv("SERVICE_NAME", "suitability-engine"),
            "environment": os.getenv("ENVIRONMENT", "local"),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name, var in _CONTEXT_FIELDS:
            payload[name] = var.get() or None
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            payload.update(extra_fields)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        # Decimal amounts and enums land here from domain log calls.
        return json.dumps({k: v for k, v in payload.items() if v is not None}, default=str)


def configure_logging() -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())


def setup_observability(app: FastAPI) -> None:
    configure_logging()
    Instrumentator(excluded_handlers=_UNMETERED_HANDLERS).instrument(app).expose(
        app, include_in_schema=False
    )
    access_logger = logging.getLogger("http.access")

    @app.middleware("http")
    async def _request_observability_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        started = time.perf_counter()
        ids = RequestIds.from_headers(request.headers)
        tokens = [(var, var.set(getattr(ids, name))) for name, var in _CONTEXT_FIELDS]
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            access_logger.info(
                "request.completed",
                extra={
                    "extra_fields": {
                        "http_method": request.method,
                        "endpoint": request.url.path,
                        "status_code": status_code,
                        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
                    }
                },
            )
            for var, token in reversed(tokens):
                var.reset(token)

        response.headers.update(ids.response_headers())
        return response
