# Core infrastructure
from learnpath.core.context import (
    RequestContext,
    clear_context,
    get_actor_kind,
    get_context,
    get_request_id,
    get_user_id,
    set_actor_kind,
    set_request_id,
    set_user_id,
)
from learnpath.core.logging import configure_structlog, get_logger
from learnpath.core.middleware import RequestContextMiddleware, set_caller_context


__all__ = [
    "RequestContext",
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_actor_kind",
    "get_context",
    "get_logger",
    "get_request_id",
    "get_user_id",
    "set_actor_kind",
    "set_caller_context",
    "set_request_id",
    "set_user_id",
]
