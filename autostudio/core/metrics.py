"""
Prometheus Metrics for Observability

Tracks per-stage latency, removal-service calls and classification outcomes.
get_metrics() renders the registry in the Prometheus text format.
"""

import time
from contextlib import contextmanager

from prometheus_client import (
    Counter,
    Histogram,
    Info,
    generate_latest,
    REGISTRY
)

# =============================================================================
# Metrics Definitions
# =============================================================================

# Pipeline Latency - Per Stage
pipeline_latency_seconds = Histogram(
    "studio_pipeline_latency_seconds",
    "Time spent in each pipeline stage",
    labelnames=["stage", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

# Total Pipeline Duration
pipeline_total_duration = Histogram(
    "studio_pipeline_total_duration_seconds",
    "Total time for complete pipeline execution",
    labelnames=["status"],
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0]
)

# Background removal API calls
removal_api_calls_total = Counter(
    "studio_removal_api_calls_total",
    "Total number of background-removal API calls",
    labelnames=["status", "http_status"]
)

# Jobs Counter
jobs_total = Counter(
    "studio_jobs_total",
    "Total number of showroom jobs processed",
    labelnames=["status", "failure_stage"]
)

# Classification outcomes
photo_mode_total = Counter(
    "studio_photo_mode_total",
    "Photo-mode classification outcomes",
    labelnames=["mode", "interior_hint"]
)

# Application Info
app_info = Info(
    "studio_app",
    "Application information"
)


# =============================================================================
# Helper Functions
# =============================================================================

def set_app_info(version: str, environment: str):
    """Set application info metric."""
    app_info.info({
        "version": version,
        "environment": environment
    })


@contextmanager
def track_stage_latency(stage: str):
    """
    Context manager to track stage latency.

    Usage:
        with track_stage_latency("removal"):
            # do work
    """
    start = time.time()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        duration = time.time() - start
        pipeline_latency_seconds.labels(stage=stage, status=status).observe(duration)


def record_removal_call(status: str, http_status: int = 200):
    """Record a background-removal API call."""
    removal_api_calls_total.labels(
        status=status,
        http_status=str(http_status)
    ).inc()


def record_job_completion(status: str, failure_stage: str = "none", duration_seconds: float = None):
    """Record job completion."""
    jobs_total.labels(status=status, failure_stage=failure_stage).inc()
    if duration_seconds is not None:
        pipeline_total_duration.labels(status=status).observe(duration_seconds)


def record_photo_mode(mode: str, interior_hint: bool):
    """Record a photo-mode classification."""
    photo_mode_total.labels(mode=mode, interior_hint=str(interior_hint).lower()).inc()


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)
