# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Structured Logging
structlog setup shared by every pipeline stage. Entries carry the app
label, the engine version and, inside a pairing run, the run_id bound by
the orchestrator.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from labelpair.config import get_settings


def _add_app_info(
    logger: Any, method: str, event_dict: EventDict
) -> EventDict:
    """Inject application name into every log entry."""
    event_dict["app"] = "labelpair"
    return event_dict


def _engine_version_adder(version: str) -> Processor:
    def _add_engine_version(
        logger: Any, method: str, event_dict: EventDict
    ) -> EventDict:
        event_dict.setdefault("engine_version", version)
        return event_dict
    return _add_engine_version


def configure_logging(log_level: Optional[str] = None) -> None:
    """
    Configure structlog once for the host process.

    DEBUG renders colourised console lines; every other level renders one
    JSON object per entry so metrics events stay machine-readable.

    Args:
        log_level: Overrides Settings.log_level when given
    """
    settings = get_settings()
    level_name = (log_level or settings.log_level).upper()
    level = getattr(logging, level_name, logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _add_app_info,
        _engine_version_adder(settings.engine_version),
    ]

    if level_name == "DEBUG":
        processors: list[Processor] = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True)
        ]
    else:
        processors = shared_processors + [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(sort_keys=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stdout),
        cache_logger_on_first_use=True,
    )

    # openai / httpx log through stdlib; keep them at the same threshold
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)


def get_logger(name: str = "labelpair") -> structlog.BoundLogger:
    """
    Return a structlog bound logger.

    Usage:
        log = get_logger(__name__)
        log.info("autopair_accepted", front="front_1.jpg", score=5.5)
    """
    return structlog.get_logger(name)
