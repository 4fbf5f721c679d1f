import pytest
from prometheus_client import REGISTRY

from autostudio.core.config import Settings
from autostudio.core.exceptions import (
    AssetError,
    ExternalAPIError,
    PipelineStageError,
    ValidationError,
)
from autostudio.core.logging import (
    LogContext,
    clear_job_context,
    job_id_var,
    set_job_context,
    stage_var,
    with_logging,
)
from autostudio.core.metrics import get_metrics, record_photo_mode, track_stage_latency


# =============================================================================
# Errors
# =============================================================================

def test_error_payload():
    error = ExternalAPIError("Remove.bg API error: 500 - boom", service="remove_bg", http_status=500, job_id="job-9")

    payload = error.to_dict()

    assert payload["error"] == "Remove.bg API error: 500 - boom"
    assert payload["job_id"] == "job-9"
    assert payload["code"] == 502
    assert payload["stage"] == "removal"
    assert payload["details"] == {"service": "remove_bg", "http_status": 500}
    assert payload["timestamp"].endswith("Z")


@pytest.mark.parametrize("error,code", [
    (ValidationError("bad upload"), 400),
    (AssetError("unknown template", asset_id="marble"), 404),
    (PipelineStageError("placement failed", stage="placement"), 500),
])
def test_error_codes(error, code):
    assert error.code == code


def test_error_picks_up_job_context():
    set_job_context("job-ctx", "intake")
    try:
        assert ValidationError("bad upload").job_id == "job-ctx"
    finally:
        clear_job_context()


# =============================================================================
# Logging context
# =============================================================================

def test_log_context_restores_previous_values():
    set_job_context("outer", "intake")

    with LogContext(job_id="inner", stage="composite"):
        assert job_id_var.get() == "inner"
        assert stage_var.get() == "composite"

    assert job_id_var.get() == "outer"
    assert stage_var.get() == "intake"
    clear_job_context()
    assert job_id_var.get() is None


def test_with_logging_sets_stage_and_propagates_errors():
    seen = []
    before = stage_var.get()

    @with_logging("analysis")
    def step(value):
        seen.append(stage_var.get())
        if value < 0:
            raise ValueError("negative")
        return value * 2

    assert step(21) == 42
    with pytest.raises(ValueError):
        step(-1)
    assert seen == ["analysis", "analysis"]
    assert stage_var.get() == before


# =============================================================================
# Metrics
# =============================================================================

def test_metrics_exposition():
    with track_stage_latency("intake"):
        pass
    with pytest.raises(RuntimeError):
        with track_stage_latency("composite"):
            raise RuntimeError("encoder failed")
    record_photo_mode("exterior", False)

    intake = REGISTRY.get_sample_value(
        "studio_pipeline_latency_seconds_count", {"stage": "intake", "status": "success"}
    )
    composite = REGISTRY.get_sample_value(
        "studio_pipeline_latency_seconds_count", {"stage": "composite", "status": "error"}
    )
    exterior = REGISTRY.get_sample_value(
        "studio_photo_mode_total", {"mode": "exterior", "interior_hint": "false"}
    )

    assert intake >= 1
    assert composite >= 1
    assert exterior >= 1
    assert b"studio_photo_mode_total" in get_metrics()


# =============================================================================
# Settings
# =============================================================================

def test_production_detection():
    assert Settings(ENVIRONMENT="prod").is_production
    assert not Settings(ENVIRONMENT="staging").is_production
    assert not Settings(ENVIRONMENT="production", DEBUG_OVERLAY=True).debug_overlay_enabled
