# backend/bullion/utils/__init__.py
"""
Cross-cutting utilities.

- logging: Logging setup with correlation id support
- context: Correlation id storage and propagation into worker threads

Usage:
    from bullion.utils import setup_logging
    from bullion.utils import correlation_scope, get_correlation_id
"""

from bullion.utils.context import (
    bind_context,
    correlation_scope,
    get_correlation_id,
    new_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from bullion.utils.logging import setup_logging

__all__ = [
    # Logging
    "setup_logging",
    # Context
    "bind_context",
    "correlation_scope",
    "get_correlation_id",
    "new_correlation_id",
    "reset_correlation_id",
    "set_correlation_id",
]
