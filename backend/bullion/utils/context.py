# backend/bullion/utils/context.py
"""
Correlation id storage.

The id lives in a contextvar, so it follows a request through async code.
Worker threads do not inherit contextvars; code that hands work to a thread
pool wraps the callable with bind_context() so log lines from the worker
carry the same id as the request (or sync job) that started it.

Usage:
    from bullion.utils.context import correlation_scope, get_correlation_id

    with correlation_scope(prefix="sync"):
        logger.info("...")        # tagged with "sync-<uuid>"

    pool.submit(bind_context(fetch), assets)
"""

import contextvars
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

P = ParamSpec("P")
R = TypeVar("R")

_correlation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None,
)


def get_correlation_id() -> str | None:
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str | None) -> contextvars.Token:
    """Set the id for the current context. Returns a token for reset_correlation_id."""
    return _correlation_id_var.set(correlation_id)


def reset_correlation_id(token: contextvars.Token) -> None:
    _correlation_id_var.reset(token)


def new_correlation_id(prefix: str | None = None) -> str:
    value = uuid.uuid4().hex
    return f"{prefix}-{value}" if prefix else value


@contextmanager
def correlation_scope(
        correlation_id: str | None = None,
        prefix: str | None = None,
) -> Iterator[str]:
    """
    Run a block under a correlation id, restoring the previous one afterwards.

    Args:
        correlation_id: Id to use; generated if omitted
        prefix: Prefix for a generated id (e.g. "sync", "backup")
    """
    value = correlation_id or new_correlation_id(prefix)
    token = set_correlation_id(value)
    try:
        yield value
    finally:
        reset_correlation_id(token)


def bind_context(func: Callable[P, R]) -> Callable[P, R]:
    """Wrap func so it runs in a copy of the caller's context (for thread pools)."""
    ctx = contextvars.copy_context()

    def _run(*args: P.args, **kwargs: P.kwargs) -> R:
        return ctx.run(func, *args, **kwargs)

    return _run
