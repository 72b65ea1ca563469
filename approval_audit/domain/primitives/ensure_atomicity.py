"""Primitive: ensure atomic units of work.

Provides an async context manager that runs registered rollback handlers
when the body of the context raises. A decision mutation and its audit
append either both become visible or neither does.

Usage:
    async with AtomicOperationContext(operation="submit_approval") as ctx:
        ctx.add_rollback(staged.discard)
        await do_operation()
        # On exception: staged.discard called, exception re-raised
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Coroutine
from types import TracebackType
from typing import Any

import structlog

log = structlog.get_logger()

# Rollback handlers can be sync or async
RollbackHandler = Callable[[], None] | Callable[[], Coroutine[Any, Any, None]]


class AtomicOperationContext:
    """Context manager ensuring all-or-nothing operations with rollback.

    Handlers are called in reverse registration order (LIFO) when the
    body raises. A failing handler is logged and does not stop the
    remaining handlers. The original exception is always re-raised.

    Attributes:
        operation: Label used in log entries for this unit of work.
    """

    def __init__(self, operation: str = "unit_of_work") -> None:
        self.operation = operation
        self._rollback_handlers: list[RollbackHandler] = []

    def add_rollback(self, handler: RollbackHandler) -> None:
        """Register a zero-argument rollback handler (sync or async)."""
        self._rollback_handlers.append(handler)

    async def __aenter__(self) -> AtomicOperationContext:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool:
        if exc_val is None:
            return False

        log.info(
            "atomic_operation_failed",
            operation=self.operation,
            error=str(exc_val),
            error_type=exc_type.__name__ if exc_type else "Unknown",
            rollback_count=len(self._rollback_handlers),
        )

        for handler in reversed(self._rollback_handlers):
            try:
                if inspect.iscoroutinefunction(handler):
                    await handler()
                else:
                    result = handler()
                    if inspect.isawaitable(result):
                        await result
            except Exception as rollback_error:
                log.error(
                    "rollback_handler_failed",
                    operation=self.operation,
                    rollback_error=str(rollback_error),
                    rollback_error_type=type(rollback_error).__name__,
                )

        return False
