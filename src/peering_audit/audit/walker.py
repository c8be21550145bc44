"""Walk subscriptions and VNets and validate every declared peering."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from peering_audit.audit.aggregator import AuditSummary, summarize
from peering_audit.audit.context import scoped_account
from peering_audit.audit.prober import ExistenceProber
from peering_audit.config import Settings, load_settings
from peering_audit.directory.base import AccountHandle, ResourceDirectory
from peering_audit.directory.cache import ContextCache
from peering_audit.directory.errors import CredentialBootstrapError, DirectoryError
from peering_audit.domain.models import AccountContext, NetworkContainer, ValidationRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalkTarget:
    account_id: str
    resource_group: str
    container_name: str


@dataclass(frozen=True)
class EnumerationFailure:
    account_id: str
    stage: str
    message: str


@dataclass
class WalkResult:
    records: list[ValidationRecord] = field(default_factory=list)
    failures: list[EnumerationFailure] = field(default_factory=list)
    accounts_scanned: int = 0
    containers_scanned: int = 0

    def merge(self, other: "WalkResult") -> None:
        self.records.extend(other.records)
        self.failures.extend(other.failures)
        self.accounts_scanned += other.accounts_scanned
        self.containers_scanned += other.containers_scanned

    def summary(self) -> AuditSummary:
        return summarize(self.records)


class TopologyWalker:
    """Drive the existence prober over one VNet or every visible subscription.

    Subscriptions are walked concurrently, at most ``max_concurrency`` at a time;
    records are returned in listing order regardless of completion order.
    """

    def __init__(
        self,
        directory: ResourceDirectory,
        prober: ExistenceProber | None = None,
        *,
        max_concurrency: int = 4,
        locations: Sequence[str] = (),
        account_filter: Iterable[str] = (),
        cache: ContextCache | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._directory = directory
        self._cache = cache if cache is not None else ContextCache()
        self._prober = prober or ExistenceProber(directory, cache=self._cache)
        self._max_concurrency = max_concurrency
        self._locations = tuple(location.lower() for location in locations)
        self._account_filter = frozenset(item.lower() for item in account_filter)

    @classmethod
    def from_settings(
        cls,
        directory: ResourceDirectory,
        settings: Settings | None = None,
        *,
        locations: Sequence[str] | None = None,
    ) -> "TopologyWalker":
        settings = settings or load_settings()
        return cls(
            directory,
            max_concurrency=settings.execution.max_concurrency,
            locations=settings.walk.locations if locations is None else locations,
            account_filter=settings.walk.subscriptions,
            cache=ContextCache(max_entries=settings.execution.context_cache_max_entries),
        )

    async def walk(self, target: WalkTarget | None = None) -> WalkResult:
        """Run one reconciliation pass; only credential bootstrap failures raise."""
        await self._directory.verify_credential()
        if target is not None:
            return await self.walk_target(target)
        return await self.walk_all()

    async def walk_target(self, target: WalkTarget) -> WalkResult:
        result = WalkResult(accounts_scanned=1)
        logger.info(
            "Validating peerings of %s/%s in subscription %s",
            target.resource_group,
            target.container_name,
            target.account_id,
        )
        stage = "acquire_context"
        try:
            async with scoped_account(self._prober.acquire, target.account_id) as scope:
                if scope.handle is None:
                    result.failures.append(
                        EnumerationFailure(
                            target.account_id, stage, scope.reason or "context not acquired"
                        )
                    )
                    return result
                account = AccountContext(
                    account_id=scope.handle.account_id,
                    display_name=scope.handle.display_name or target.account_id,
                    enabled=True,
                )
                stage = "get_container"
                container = await self._directory.get_container(
                    scope.handle, target.resource_group, target.container_name
                )
                result.containers_scanned = 1
                result.records.extend(
                    await self._validate_container(account, container, scope.handle)
                )
        except DirectoryError as exc:
            logger.warning("Target %s failed at %s: %s", target.container_name, stage, exc)
            result.failures.append(EnumerationFailure(target.account_id, stage, str(exc)))
        except Exception as exc:
            logger.exception("Unexpected error validating target %s", target.container_name)
            result.failures.append(
                EnumerationFailure(target.account_id, stage, f"{type(exc).__name__}: {exc}")
            )
        return result

    async def walk_all(self) -> WalkResult:
        try:
            accounts = await self._directory.list_accounts()
        except DirectoryError as exc:
            raise CredentialBootstrapError(f"Could not list subscriptions: {exc}") from exc

        selected = self._select_accounts(accounts)
        logger.info("Walking %d of %d visible subscriptions", len(selected), len(accounts))

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def bounded(account: AccountContext) -> WalkResult:
            async with semaphore:
                return await self._walk_account(account)

        partials = await asyncio.gather(*(bounded(account) for account in selected))

        result = WalkResult()
        for partial in partials:
            result.merge(partial)
        logger.info(
            "Walk complete: %d subscriptions, %d VNets, %d peerings, %d failures",
            result.accounts_scanned,
            result.containers_scanned,
            len(result.records),
            len(result.failures),
        )
        return result

    def _select_accounts(self, accounts: Iterable[AccountContext]) -> list[AccountContext]:
        selected = []
        for account in accounts:
            if not account.enabled:
                logger.info("Skipping disabled subscription %s", account.account_id)
                continue
            if self._account_filter and not (
                account.account_id.lower() in self._account_filter
                or account.display_name.lower() in self._account_filter
            ):
                continue
            selected.append(account)
        return selected

    async def _walk_account(self, account: AccountContext) -> WalkResult:
        result = WalkResult(accounts_scanned=1)
        logger.info("Scanning subscription %s (%s)", account.display_name, account.account_id)
        stage = "acquire_context"
        try:
            async with scoped_account(self._prober.acquire, account.account_id) as scope:
                if scope.handle is None:
                    result.failures.append(
                        EnumerationFailure(
                            account.account_id, stage, scope.reason or "context not acquired"
                        )
                    )
                    return result
                stage = "list_containers"
                containers = await self._directory.list_containers(
                    scope.handle, self._locations
                )
                stage = "validate"
                for container in containers:
                    if not container.peerings:
                        continue
                    result.containers_scanned += 1
                    result.records.extend(
                        await self._validate_container(account, container, scope.handle)
                    )
        except DirectoryError as exc:
            logger.warning(
                "Error scanning subscription %s at %s: %s", account.account_id, stage, exc
            )
            result.failures.append(EnumerationFailure(account.account_id, stage, str(exc)))
        except Exception as exc:
            logger.exception("Unexpected error scanning subscription %s", account.account_id)
            result.failures.append(
                EnumerationFailure(account.account_id, stage, f"{type(exc).__name__}: {exc}")
            )
        return result

    async def _validate_container(
        self,
        account: AccountContext,
        container: NetworkContainer,
        handle: AccountHandle,
    ) -> list[ValidationRecord]:
        records = []
        for link in container.peerings:
            outcome = await self._prober.probe(link.remote, caller=handle)
            logger.info(
                "%s/%s peering %s -> %s: %s",
                container.resource_group,
                container.name,
                link.name,
                outcome.status.value,
                outcome.message,
            )
            records.append(ValidationRecord.build(account, container, link, outcome))
        return records
