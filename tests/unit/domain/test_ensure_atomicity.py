"""Unit tests for AtomicOperationContext rollback behavior."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from approval_audit.domain.primitives import AtomicOperationContext


class TestAtomicOperationContext:
    """Tests for all-or-nothing rollback handling."""

    @pytest.mark.asyncio
    async def test_no_rollback_on_success(self) -> None:
        handler = MagicMock()

        async with AtomicOperationContext("submit") as ctx:
            ctx.add_rollback(handler)

        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_rollback_runs_in_reverse_order(self) -> None:
        calls: list[str] = []

        with pytest.raises(RuntimeError, match="boom"):
            async with AtomicOperationContext("submit") as ctx:
                ctx.add_rollback(lambda: calls.append("first"))
                ctx.add_rollback(lambda: calls.append("second"))
                raise RuntimeError("boom")

        assert calls == ["second", "first"]

    @pytest.mark.asyncio
    async def test_async_handlers_awaited(self) -> None:
        handler = AsyncMock()

        with pytest.raises(ValueError):
            async with AtomicOperationContext() as ctx:
                ctx.add_rollback(handler)
                raise ValueError("bad")

        handler.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_others(self) -> None:
        """A broken handler is logged; the remaining handlers still run."""
        survivor = MagicMock()

        def broken() -> None:
            raise OSError("disk gone")

        with pytest.raises(KeyError):
            async with AtomicOperationContext() as ctx:
                ctx.add_rollback(survivor)
                ctx.add_rollback(broken)
                raise KeyError("missing")

        survivor.assert_called_once()
