"""Shared service plumbing: structured logging, timeouts and the clock.

Usage:
    from approval_audit.application.services.base import LoggingMixin

    class MyService(LoggingMixin):
        def __init__(self, dependency: SomePort) -> None:
            self._dependency = dependency
            self._init_logger()

        async def do_something(self) -> None:
            log = self._log_operation("do_something", item_id="123")
            log.info("operation_started")
            # ... do work ...
            log.info("operation_completed")
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TypeVar

import structlog

from approval_audit.domain.exceptions import ApprovalAuditError
from approval_audit.infrastructure.observability.correlation import get_correlation_id

T = TypeVar("T")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


async def call_with_timeout(
    awaitable: Awaitable[T],
    timeout_seconds: float,
    on_timeout: Callable[[], ApprovalAuditError],
) -> T:
    """Await an external call, converting expiry into a typed error.

    Cancellation of the calling task propagates unchanged.

    Args:
        awaitable: The external call.
        timeout_seconds: Upper bound on the call; <= 0 disables the bound.
        on_timeout: Factory for the error raised on expiry.

    Raises:
        ApprovalAuditError: Whatever ``on_timeout`` builds, on expiry.
    """
    if timeout_seconds <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except TimeoutError as exc:
        raise on_timeout() from exc


class LoggingMixin:
    """Mixin providing structured logging for services.

    The logger is bound with:
    - service: The class name of the service
    - component: The component type (default: "approval")

    Each operation gets:
    - operation: The name of the operation being performed
    - correlation_id: From context for request tracing
    - Any additional context passed to _log_operation()

    Attributes:
        _log: The structlog BoundLogger for this service instance.
    """

    _log: structlog.BoundLogger

    def _init_logger(self, component: str = "approval") -> None:
        """Initialize the logger with service name binding.

        Should be called in __init__ after setting up dependencies.
        """
        self._log = structlog.get_logger().bind(
            service=self.__class__.__name__,
            component=component,
        )

    def _log_operation(
        self,
        operation: str,
        **context: object,
    ) -> structlog.BoundLogger:
        """Create operation-scoped logger with correlation ID.

        Example:
            log = self._log_operation("append", decision_id=decision_id)
            log.info("audit_append_started")
        """
        return self._log.bind(
            operation=operation,
            correlation_id=get_correlation_id(),
            **context,
        )
