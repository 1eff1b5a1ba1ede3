"""Shared API plumbing: middleware, exception mapping, dependencies."""

from simengine.shared.api.dependencies import get_store, get_config_provider
from simengine.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    register_exception_handlers,
)

__all__ = [
    "get_store",
    "get_config_provider",
    "CorrelationIDMiddleware",
    "LoggingMiddleware",
    "register_exception_handlers",
]
