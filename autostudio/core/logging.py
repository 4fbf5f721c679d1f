"""
Structured Logging with structlog

JSON lines in production, a coloured console in development. Every entry
carries the app version and environment, and the current job_id and stage
while a job is being processed.
"""

import sys
import logging
import structlog
from typing import Optional, Any, Dict
from datetime import datetime
from contextvars import ContextVar
from functools import wraps

from autostudio.core.config import settings

# Job-scoped context; set by the pipeline stages, read by every log call
job_id_var: ContextVar[Optional[str]] = ContextVar("job_id", default=None)
stage_var: ContextVar[Optional[str]] = ContextVar("stage", default=None)

QUIET_LOGGERS = ("httpx", "httpcore", "PIL")


def add_service_info(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    event_dict["version"] = settings.APP_VERSION
    event_dict["environment"] = settings.ENVIRONMENT
    return event_dict


def add_job_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Attach the job being processed; explicit keyword values win."""
    job_id = job_id_var.get()
    if job_id:
        event_dict.setdefault("job_id", job_id)
    stage = stage_var.get()
    if stage:
        event_dict.setdefault("stage", stage)
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    json_format: bool = True,
):
    """
    Configure structlog over the standard library logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        json_format: JSON lines when True, coloured console output otherwise
    """
    level = getattr(logging, log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_format
        else structlog.dev.ConsoleRenderer(colors=True)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            add_service_info,
            add_job_context,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_job_context(job_id: str, stage: Optional[str] = None):
    job_id_var.set(job_id)
    if stage:
        stage_var.set(stage)


def clear_job_context():
    job_id_var.set(None)
    stage_var.set(None)


class LogContext:
    """
    Scoped job context, restored on exit.

        with LogContext(job_id=outcome.job_id):
            logger.info("photo_written", ...)
    """

    def __init__(self, job_id: Optional[str] = None, stage: Optional[str] = None):
        self.values = {job_id_var: job_id, stage_var: stage}
        self.tokens = []

    def __enter__(self):
        self.tokens = [var.set(value) for var, value in self.values.items() if value]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for token in reversed(self.tokens):
            token.var.reset(token)
        self.tokens = []
        return False


def _elapsed_ms(start_time: datetime) -> int:
    return int((datetime.utcnow() - start_time).total_seconds() * 1000)


def with_logging(stage: str):
    """
    Run a function under `stage`, logging stage_completed / stage_failed with its duration.

    Exceptions are logged and re-raised unchanged.
    """
    def decorator(func):
        log = get_logger(func.__module__)

        @wraps(func)
        def wrapper(*args, **kwargs):
            token = stage_var.set(stage)
            start_time = datetime.utcnow()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                log.error(
                    "stage_failed",
                    stage=stage,
                    duration_ms=_elapsed_ms(start_time),
                    error=str(e),
                    error_type=type(e).__name__
                )
                raise
            else:
                log.info("stage_completed", stage=stage, duration_ms=_elapsed_ms(start_time))
                return result
            finally:
                stage_var.reset(token)

        return wrapper

    return decorator
