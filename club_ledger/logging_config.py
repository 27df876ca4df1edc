"""
Structured logging setup.

structlog renders every event as one JSON object (or a readable console
line when LOG_JSON is off) on top of the stdlib logging backend, so
uvicorn's and SQLAlchemy's loggers share the same handler and level.

Usage:
    import structlog
    logger = structlog.get_logger(__name__)
    logger.info("balance_applied", account_id=str(account.id), new_balance_cents=500)
"""

import logging
import sys

import structlog

from club_ledger.config import settings


def configure_logging() -> None:
    """Configure stdlib logging and structlog. Safe to call more than once."""
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.LOG_JSON
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
