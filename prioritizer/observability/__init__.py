"""
Observability module: structured logging and request IDs.

Usage:
    from prioritizer.observability import configure_logging, get_logger, RequestContext

    configure_logging("INFO")
    logger = get_logger(__name__)

    with RequestContext() as ctx:
        logger.info("Processing", extra={"item_id": "123"})
"""

from .context import RequestContext, generate_request_id, get_request_id, set_request_id
from .logging import HumanFormatter, JSONFormatter, configure_logging, get_logger
from .middleware import CorrelationIdMiddleware

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "JSONFormatter",
    "HumanFormatter",
    # Context
    "RequestContext",
    "generate_request_id",
    "get_request_id",
    "set_request_id",
    # Middleware
    "CorrelationIdMiddleware",
]
