"""Tests for scoped account context acquisition."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager

import pytest
from helpers import SUB_A, SUB_B, SUB_C

from peering_audit.audit.context import (
    get_active_account,
    reset_active_account,
    scoped_account,
    set_active_account,
    with_context,
)
from peering_audit.directory.base import AccountHandle
from peering_audit.directory.errors import DirectoryError, FaultKind


class _Acquirer:
    def __init__(self, denied: set[str] | None = None, faults: dict[str, Exception] | None = None):
        self.denied = denied or set()
        self.faults = faults or {}
        self.calls: list[str] = []

    async def __call__(self, account_id: str) -> AccountHandle:
        self.calls.append(account_id)
        if account_id in self.faults:
            raise self.faults[account_id]
        if account_id in self.denied:
            raise DirectoryError("SubscriptionNotFound", FaultKind.ACCESS_DENIED)
        return AccountHandle(account_id=account_id)


@contextmanager
def _caller(account_id: str = SUB_A) -> Iterator[AccountHandle]:
    handle = AccountHandle(account_id=account_id)
    token = set_active_account(handle)
    try:
        yield handle
    finally:
        reset_active_account(token)


class TestScopedAccount:
    @pytest.mark.asyncio
    async def test_same_account_does_not_acquire(self) -> None:
        acquire = _Acquirer()

        with _caller():
            async with scoped_account(acquire, SUB_A.upper()) as scope:
                assert scope.acquired
                assert scope.switched is False

        assert acquire.calls == []

    @pytest.mark.asyncio
    async def test_switch_and_restore(self) -> None:
        acquire = _Acquirer()

        with _caller():
            async with scoped_account(acquire, SUB_B) as scope:
                assert scope.switched is True
                assert get_active_account().account_id == SUB_B

            assert get_active_account().account_id == SUB_A
        assert acquire.calls == [SUB_B]

    @pytest.mark.asyncio
    async def test_no_active_context_is_restored_to_none(self) -> None:
        async with scoped_account(_Acquirer(), SUB_B):
            assert get_active_account().account_id == SUB_B

        assert get_active_account() is None

    @pytest.mark.asyncio
    async def test_denied_acquisition_reports_not_acquired(self) -> None:
        acquire = _Acquirer(denied={SUB_B})

        with _caller():
            async with scoped_account(acquire, SUB_B) as scope:
                assert scope.acquired is False
                assert "SubscriptionNotFound" in (scope.reason or "")
                assert get_active_account().account_id == SUB_A

            assert get_active_account().account_id == SUB_A

    @pytest.mark.asyncio
    async def test_transport_fault_propagates_and_restores(self) -> None:
        acquire = _Acquirer(
            faults={SUB_B: DirectoryError("timed out", FaultKind.TRANSPORT, code="Timeout")}
        )

        with _caller():
            with pytest.raises(DirectoryError, match="timed out"):
                async with scoped_account(acquire, SUB_B):
                    pytest.fail("body must not run")

            assert get_active_account().account_id == SUB_A

    @pytest.mark.asyncio
    async def test_body_fault_restores(self) -> None:
        acquire = _Acquirer()

        with _caller():
            with pytest.raises(RuntimeError, match="boom"):
                async with scoped_account(acquire, SUB_B):
                    raise RuntimeError("boom")

            assert get_active_account().account_id == SUB_A

    @pytest.mark.asyncio
    async def test_explicit_current_handle_is_used(self) -> None:
        acquire = _Acquirer()
        caller = AccountHandle(account_id=SUB_C)

        with _caller():
            async with scoped_account(acquire, SUB_C, current=caller) as scope:
                assert scope.handle is caller
                assert get_active_account() is caller

            assert get_active_account().account_id == SUB_A
        assert acquire.calls == []

    @pytest.mark.asyncio
    async def test_concurrent_tasks_do_not_share_active_context(self) -> None:
        acquire = _Acquirer()
        seen: dict[str, str] = {}

        async def visit(account_id: str) -> None:
            async with scoped_account(acquire, account_id):
                await asyncio.sleep(0.01)
                seen[account_id] = get_active_account().account_id

        with _caller():
            await asyncio.gather(visit(SUB_B), visit(SUB_C))

            assert seen == {SUB_B: SUB_B, SUB_C: SUB_C}
            assert get_active_account().account_id == SUB_A


class TestWithContext:
    @pytest.mark.asyncio
    async def test_returns_body_result(self) -> None:
        async def body(handle: AccountHandle) -> str:
            return handle.account_id

        acquired, value = await with_context(_Acquirer(), SUB_B, body)

        assert acquired is True
        assert value == SUB_B

    @pytest.mark.asyncio
    async def test_denied_skips_body(self) -> None:
        called = []

        async def body(handle: AccountHandle) -> str:
            called.append(handle)
            return "unreachable"

        with _caller():
            acquired, value = await with_context(_Acquirer(denied={SUB_B}), SUB_B, body)

            assert (acquired, value) == (False, None)
            assert get_active_account().account_id == SUB_A
        assert called == []
