"""structlog setup for the discovery engine.

Engine modules only call structlog.get_logger(__name__); nothing here runs
on import. The process entry point calls configure_structlog once, which:
- routes structlog and stdlib records (httpx, redis) through one handler
- renders JSON lines, or a coloured console view for local work
- merges bound context variables (operation, session_id) into each entry
"""

import logging
import logging.config
from typing import Any

import structlog


def app_name_injector(app_name: str):
    """Processor stamping every entry with the application name."""

    def inject(logger: Any, method_name: str, event_dict: dict) -> dict:
        event_dict.setdefault("app", app_name)
        return event_dict

    return inject


def _shared_processors(app_name: str) -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        app_name_injector(app_name),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]


def configure_structlog(
    log_level: str = "INFO",
    json_logs: bool = True,
    app_name: str = "discovery",
    stream: str = "ext://sys.stderr",
) -> None:
    """Install the processor chain and the root handler.

    structlog caches bound loggers on first use, so call this before the
    engine logs anything.

    Args:
        log_level: Root level name ("DEBUG", "INFO", ...)
        json_logs: JSON lines when True, ConsoleRenderer otherwise
        app_name: Value of the "app" key on every entry
        stream: logging.config stream reference for the handler
    """
    shared = _shared_processors(app_name)
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processors": [structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
                    "foreign_pre_chain": shared,
                },
            },
            "handlers": {
                "default": {"class": "logging.StreamHandler", "formatter": "structured", "stream": stream},
            },
            "root": {"handlers": ["default"], "level": log_level},
            # Transport chatter from the provider clients and the Redis store
            "loggers": {name: {"level": "WARNING"} for name in ("httpx", "httpcore", "redis")},
        }
    )

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
