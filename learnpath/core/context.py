"""Request context management using contextvars.

Every request gets a request id; authenticated requests also carry the
user id and the actor kind the caller was resolved to, so that progress,
grading and certification logs can be correlated per learner without
passing those values through each call.
"""

from contextvars import ContextVar, Token
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
actor_kind_var: ContextVar[str | None] = ContextVar("actor_kind", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, generates a new one.

    Returns:
        The request ID that was set.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    """Get the current user ID."""
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None) -> None:
    """Set the user ID for the current context."""
    user_id_var.set(str(user_id) if user_id is not None else None)


def get_actor_kind() -> str | None:
    """Get the actor kind (direct/sponsored) of the current caller."""
    return actor_kind_var.get()


def set_actor_kind(actor_kind: str | None) -> None:
    """Set the actor kind for the current context."""
    actor_kind_var.set(actor_kind)


def get_trace_id() -> str | None:
    """Get the current trace ID."""
    return trace_id_var.get()


def set_trace_id(trace_id: str | None) -> None:
    """Set the trace ID for the current context."""
    trace_id_var.set(trace_id)


def get_context() -> dict[str, Any]:
    """Get all non-empty context variables as a dictionary."""
    context: dict[str, Any] = {}

    request_id = get_request_id()
    if request_id:
        context["request_id"] = request_id

    user_id = get_user_id()
    if user_id:
        context["user_id"] = user_id

    actor_kind = get_actor_kind()
    if actor_kind:
        context["actor_kind"] = actor_kind

    trace_id = get_trace_id()
    if trace_id:
        context["trace_id"] = trace_id

    return context


def clear_context() -> None:
    """Clear all context variables.

    Called at the end of each request to prevent leakage between requests.
    """
    request_id_var.set("")
    user_id_var.set(None)
    actor_kind_var.set(None)
    trace_id_var.set(None)


class RequestContext:
    """Context manager for a request-like scope outside HTTP handlers.

    Usage:
        with RequestContext(user_id=user_id, actor_kind="direct"):
            await progress_service.mark_content_completed(...)
    """

    def __init__(
        self,
        request_id: str | None = None,
        user_id: str | UUID | None = None,
        actor_kind: str | None = None,
    ) -> None:
        self.request_id = request_id
        self.user_id = user_id
        self.actor_kind = actor_kind
        self._tokens: list[tuple[ContextVar, Token]] = []

    def __enter__(self) -> "RequestContext":
        """Enter context and set variables."""
        self._tokens.append(
            (request_id_var, request_id_var.set(self.request_id or generate_request_id()))
        )
        if self.user_id is not None:
            self._tokens.append((user_id_var, user_id_var.set(str(self.user_id))))
        if self.actor_kind is not None:
            self._tokens.append((actor_kind_var, actor_kind_var.set(self.actor_kind)))
        return self

    def __exit__(self, *_: object) -> None:
        """Exit context and restore previous values."""
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
