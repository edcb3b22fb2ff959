"""Structured logging configuration for narrated-video.

Module loggers stay plain ``logging.getLogger(__name__)``; structlog's
ProcessorFormatter renders them, and job identifiers bound with
set_job_context() are merged into every record emitted while a job runs.
"""

import logging
import sys

import structlog

JOB_CONTEXT_KEYS = ("job_id", "target_id")

NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "google_genai",
    "google_genai.models",
    "anthropic",
    "aiohttp.access",
    "aiosqlite",
    "uvicorn.access",
)


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Route all logging through a single structlog-rendered handler.

    Safe to call more than once; the root handler is replaced each time.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_output: One JSON object per line instead of colored console output
    """
    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
        exception_processors = [structlog.processors.format_exc_info]
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        exception_processors = []

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *exception_processors,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper()))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def set_job_context(job_id: str, target_id: str | None = None) -> None:
    """Tag every log record in the current task with the job (and target) it serves."""
    bound = {"job_id": job_id}
    if target_id:
        bound["target_id"] = target_id
    structlog.contextvars.bind_contextvars(**bound)


def clear_job_context() -> None:
    structlog.contextvars.unbind_contextvars(*JOB_CONTEXT_KEYS)
