"""Scoped acquisition of the active account context.

The active handle lives in a ContextVar, so every asyncio task sees its own value and
concurrent account walks cannot observe each other's switches.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import TypeVar

from peering_audit.directory.base import AccountHandle
from peering_audit.directory.errors import DirectoryError, FaultKind

logger = logging.getLogger(__name__)

T = TypeVar("T")

AcquireFn = Callable[[str], Awaitable[AccountHandle]]

# Acquisition faults that mean "cannot get in", reported as acquired=False.
DENIAL_KINDS = frozenset({FaultKind.ACCESS_DENIED, FaultKind.NOT_FOUND})

_active_account: ContextVar[AccountHandle | None] = ContextVar(
    "active_account",
    default=None,
)


def get_active_account() -> AccountHandle | None:
    return _active_account.get()


def set_active_account(handle: AccountHandle | None) -> Token[AccountHandle | None]:
    """Set the active handle and return the reset token."""
    return _active_account.set(handle)


def reset_active_account(token: Token[AccountHandle | None]) -> None:
    _active_account.reset(token)


@dataclass(frozen=True)
class ContextScope:
    account_id: str
    handle: AccountHandle | None
    switched: bool
    reason: str | None = None

    @property
    def acquired(self) -> bool:
        return self.handle is not None


@asynccontextmanager
async def scoped_account(
    acquire: AcquireFn,
    account_id: str,
    current: AccountHandle | None = None,
) -> AsyncIterator[ContextScope]:
    """Make ``account_id`` the active context for the body.

    Denied acquisitions yield a scope with ``acquired == False``; other acquisition
    faults propagate. The previously active handle is restored on every exit path.
    """
    active = current if current is not None else _active_account.get()

    if active is not None and active.matches(account_id):
        scope = ContextScope(account_id=account_id, handle=active, switched=False)
    else:
        try:
            handle = await acquire(account_id)
        except DirectoryError as exc:
            if exc.kind not in DENIAL_KINDS:
                raise
            logger.info("Could not acquire context for %s: %s", account_id, exc)
            scope = ContextScope(
                account_id=account_id,
                handle=None,
                switched=False,
                reason=str(exc),
            )
        else:
            scope = ContextScope(account_id=account_id, handle=handle, switched=True)

    token = _active_account.set(scope.handle if scope.acquired else _active_account.get())
    try:
        yield scope
    finally:
        _active_account.reset(token)


async def with_context(
    acquire: AcquireFn,
    account_id: str,
    body: Callable[[AccountHandle], Awaitable[T]],
    current: AccountHandle | None = None,
) -> tuple[bool, T | None]:
    """Run ``body`` under ``account_id``; returns (acquired, body result)."""
    async with scoped_account(acquire, account_id, current=current) as scope:
        if scope.handle is None:
            return False, None
        return True, await body(scope.handle)
