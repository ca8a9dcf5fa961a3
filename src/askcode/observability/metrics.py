from __future__ import annotations

"""Prometheus metrics for the askcode FastAPI backend.

Adds an HTTP middleware that records request latency per method/path/status,
plus counters for the answer pipeline.
"""

import time
from typing import Callable, Awaitable

from prometheus_client import Counter, Histogram
from starlette.requests import Request
from starlette.responses import Response

# Histogram buckets chosen for web latencies (seconds); streamed answers run long
REQUEST_LATENCY = Histogram(
    "askcode_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status"),
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0),
)

QUESTIONS_TOTAL = Counter(
    "askcode_questions_total",
    "Questions accepted by the answer pipeline",
    labelnames=("agent_type",),
)

RATE_LIMIT_RETRIES = Counter(
    "askcode_llm_rate_limit_retries_total",
    "Stream acquisitions retried after a provider rate limit",
)

ANSWER_STREAMS = Counter(
    "askcode_answer_streams_total",
    "Answer streams by terminal outcome",
    labelnames=("outcome",),
)

TURN_PERSIST_FAILURES = Counter(
    "askcode_turn_persist_failures_total",
    "Conversation turns that could not be recorded after a successful stream",
)


def sanitize_path(path: str) -> str:
    """Reduce high-cardinality paths (e.g., /projects/{id}/questions) to a coarse label."""
    if not path:
        return "/"
    segs = path.split("?")[0].split("/")
    if len(segs) > 1:
        return "/" + segs[1]
    return path


def metrics_middleware_factory() -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    async def middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if request.url.path.startswith("/metrics"):
            return await call_next(request)
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        REQUEST_LATENCY.labels(
            method=request.method,
            path=sanitize_path(request.url.path),
            status=str(response.status_code),
        ).observe(elapsed)
        return response

    return middleware
