"""
Structured Logging with Structlog.

JSON logs for the billing API, with request context bound per request and
customer contact numbers masked before rendering.
"""

import logging
import sys
from contextlib import AbstractContextManager
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from purifier_billing.config import settings

# Event keys whose values are customer contact or refund account numbers
MASKED_KEYS = frozenset(
    {"customer_phone", "alt_mobile_no", "bank_account_number", "account_number"}
)


def mask_number(value: Any) -> Any:
    """Keep the last four characters of a contact or account number."""
    if not isinstance(value, str) or len(value) <= 4:
        return value
    return "*" * (len(value) - 4) + value[-4:]


def mask_contact_details(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    for key in MASKED_KEYS.intersection(event_dict):
        event_dict[key] = mask_number(event_dict[key])
    return event_dict


def add_service(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", settings.service_name)
    return event_dict


def _renderer() -> Processor:
    if settings.log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging() -> None:
    """Configure stdlib logging and the structlog processor chain."""
    level = getattr(logging, settings.log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service,
        mask_contact_details,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        _renderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("usage_recorded", customer_id=customer_id, source="direct")
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]


def log_context(**context: Any) -> AbstractContextManager[None]:
    """
    Bind keys to every log line emitted inside the block.

    Previously bound values are restored on exit, so nested blocks compose.
    """
    return structlog.contextvars.bound_contextvars(**context)
