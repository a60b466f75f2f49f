# rest_client/monitoring.py
"""
Centralized monitoring: Prometheus metrics, structured JSON logging, optional Sentry.

Env vars:
- PROMETHEUS_ENABLED (default: true)
- SENTRY_DSN (optional)
- LOG_AS_JSON (default: true)
- LOG_LEVEL (default: INFO)
- ENVIRONMENT (default: development)
"""

import os
import logging
import time
from typing import Tuple

import sentry_sdk
from prometheus_client import (
    Counter, Histogram,
    generate_latest, CONTENT_TYPE_LATEST, REGISTRY,
)
from pythonjsonlogger import jsonlogger

# --- ENV flags
PROMETHEUS_ENABLED = os.getenv("PROMETHEUS_ENABLED", "true").lower() in ("1", "true", "yes")
SENTRY_DSN = os.getenv("SENTRY_DSN", None)
LOG_AS_JSON = os.getenv("LOG_AS_JSON", "true").lower() in ("1", "true", "yes")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")


# --- Logger setup
def setup_logger(name: str = "rest-client", level: int = None) -> logging.Logger:
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO")) if level is None else level
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        if LOG_AS_JSON:
            fmt = jsonlogger.JsonFormatter(
                "%(asctime)s %(levelname)s %(name)s %(message)s"
            )
            handler.setFormatter(fmt)
        logger.addHandler(handler)
    return logger


logger = setup_logger()

# --- Sentry (optional)
if SENTRY_DSN:
    sentry_sdk.init(dsn=SENTRY_DSN, environment=ENVIRONMENT)
    logger.info("Sentry initialized")


# --- Prometheus metrics
REQUEST_COUNT = Counter(
    "rest_client_api_requests_total",
    "Total API requests served",
    ["method", "endpoint", "status"],
)

REQUEST_LATENCY = Histogram(
    "rest_client_api_request_latency_seconds",
    "API request latency in seconds",
    ["endpoint"],
)

EXECUTIONS = Counter(
    "rest_client_executions_total",
    "Outbound requests executed",
    ["method", "outcome"],
)

EXECUTION_LATENCY = Histogram(
    "rest_client_execution_latency_seconds",
    "Outbound request round-trip time",
)

HISTORY_WRITE_FAILURES = Counter(
    "rest_client_history_write_failures_total",
    "History records that could not be persisted",
)


# --- Helper wrappers (never crash the app)
def observe_request(start_ts: float, endpoint: str, method: str, status: str):
    try:
        REQUEST_LATENCY.labels(endpoint=endpoint).observe(time.time() - start_ts)
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status=status).inc()
    except Exception:
        logger.debug("Failed to record request metrics", exc_info=True)


def observe_execution(method: str, outcome: str, response_time_ms: int):
    try:
        EXECUTIONS.labels(method=method, outcome=outcome).inc()
        EXECUTION_LATENCY.observe(response_time_ms / 1000.0)
    except Exception:
        logger.debug("Failed to record execution metrics", exc_info=True)


def inc_history_write_failure():
    try:
        HISTORY_WRITE_FAILURES.inc()
    except Exception:
        logger.debug("Failed to record history write failure", exc_info=True)


def prometheus_metrics_response() -> Tuple[bytes, str]:
    """Return (body_bytes, content_type) for Prometheus scrape."""
    try:
        return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
    except Exception:
        logger.exception("Failed to render Prometheus metrics")
        return b"", CONTENT_TYPE_LATEST
