"""Existence and permission probe for the remote end of a peering link."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from peering_audit.audit.context import AcquireFn, scoped_account
from peering_audit.directory.base import AccountHandle, ResourceDirectory
from peering_audit.directory.cache import ContextCache
from peering_audit.directory.errors import DirectoryError, FaultKind
from peering_audit.domain.models import (
    ContainerSnapshot,
    RemoteReference,
    ValidationOutcome,
    ValidationStatus,
)
from peering_audit.utils.time import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeTrace:
    """Where a probe stopped.

    ``account_reachable`` is None until acquisition was attempted,
    ``resource_group_visible`` is None unless the container lookup came back not found.
    """

    reference: RemoteReference
    account_reachable: bool | None = None
    container: ContainerSnapshot | None = None
    container_fault: FaultKind | None = None
    resource_group_visible: bool | None = None
    fault: str | None = None
    detail: str | None = None


def _with_detail(message: str, detail: str | None) -> str:
    return f"{message}: {detail}" if detail else message


def classify_trace(trace: ProbeTrace, checked_at: datetime | None = None) -> ValidationOutcome:
    ref = trace.reference
    checked_at = checked_at or utc_now()

    if not ref.parsed:
        status = ValidationStatus.NOT_VALIDATED
        message = "Remote VNet identity fields not available"
    elif trace.fault is not None:
        status = ValidationStatus.ERROR
        message = f"Validation error: {trace.fault}"
    elif trace.account_reachable is False:
        status = ValidationStatus.ACCESS_DENIED
        message = _with_detail(
            f"Cannot access subscription {ref.account_id}", trace.detail
        )
    elif trace.container is not None:
        return ValidationOutcome(
            status=ValidationStatus.VALIDATED,
            message=(
                f"Remote VNet {ref.container_name} exists in resource group "
                f"{ref.resource_group} of subscription {ref.account_id}"
            ),
            snapshot=trace.container,
            checked_at=checked_at,
        )
    elif trace.container_fault is FaultKind.ACCESS_DENIED:
        status = ValidationStatus.ACCESS_DENIED
        message = _with_detail(
            f"Access denied reading VNet {ref.resource_group}/{ref.container_name} "
            f"in subscription {ref.account_id}",
            trace.detail,
        )
    elif trace.resource_group_visible is False:
        status = ValidationStatus.ACCESS_DENIED
        message = (
            f"Cannot access resource group {ref.resource_group} in subscription "
            f"{ref.account_id} - may be permissions or nonexistence"
        )
    elif trace.resource_group_visible is True:
        status = ValidationStatus.NOT_FOUND
        message = (
            f"VNet {ref.container_name} not found in resource group {ref.resource_group} "
            "- may be deleted or renamed; stale link candidate"
        )
    else:
        status = ValidationStatus.ERROR
        message = "Validation error: probe ended without a result"

    return ValidationOutcome(status=status, message=message, checked_at=checked_at)


class ExistenceProber:
    """Probe whether a remote VNet exists and is visible to the caller."""

    def __init__(
        self,
        directory: ResourceDirectory,
        cache: ContextCache | None = None,
    ) -> None:
        self._directory = directory
        self._cache = cache

    @property
    def acquire(self) -> AcquireFn:
        return self._acquire

    async def _acquire(self, account_id: str) -> AccountHandle:
        if self._cache is None:
            return await self._directory.acquire_context(account_id)
        return await self._cache.get_or_acquire(
            account_id,
            lambda: self._directory.acquire_context(account_id),
        )

    async def probe(
        self,
        ref: RemoteReference,
        caller: AccountHandle | None = None,
    ) -> ValidationOutcome:
        trace = await self.trace(ref, caller=caller)
        outcome = classify_trace(trace)
        logger.debug(
            "Probe %s/%s/%s -> %s",
            ref.account_id,
            ref.resource_group,
            ref.container_name,
            outcome.status.value,
        )
        return outcome

    async def trace(
        self,
        ref: RemoteReference,
        caller: AccountHandle | None = None,
    ) -> ProbeTrace:
        if not ref.parsed:
            return ProbeTrace(reference=ref)

        try:
            async with scoped_account(self._acquire, ref.account_id, current=caller) as scope:
                if scope.handle is None:
                    return ProbeTrace(
                        reference=ref,
                        account_reachable=False,
                        detail=scope.reason,
                    )
                return await self._lookup(ref, scope.handle)
        except DirectoryError as exc:
            return ProbeTrace(reference=ref, fault=str(exc))
        except Exception as exc:
            logger.warning("Unexpected fault probing %s", ref.raw_id, exc_info=True)
            return ProbeTrace(reference=ref, fault=f"{type(exc).__name__}: {exc}")

    async def _lookup(self, ref: RemoteReference, handle: AccountHandle) -> ProbeTrace:
        try:
            container = await self._directory.get_container(
                handle, ref.resource_group, ref.container_name
            )
        except DirectoryError as exc:
            if exc.kind is FaultKind.ACCESS_DENIED:
                return ProbeTrace(
                    reference=ref,
                    account_reachable=True,
                    container_fault=FaultKind.ACCESS_DENIED,
                    detail=str(exc),
                )
            if exc.kind is not FaultKind.NOT_FOUND:
                raise
        else:
            return ProbeTrace(
                reference=ref,
                account_reachable=True,
                container=container.snapshot(),
            )

        # Container missing: a visible resource group means the VNet itself is gone.
        try:
            await self._directory.get_resource_group(handle, ref.resource_group)
        except DirectoryError as exc:
            if exc.kind not in (FaultKind.NOT_FOUND, FaultKind.ACCESS_DENIED):
                raise
            return ProbeTrace(
                reference=ref,
                account_reachable=True,
                container_fault=FaultKind.NOT_FOUND,
                resource_group_visible=False,
                detail=str(exc),
            )
        return ProbeTrace(
            reference=ref,
            account_reachable=True,
            container_fault=FaultKind.NOT_FOUND,
            resource_group_visible=True,
        )
