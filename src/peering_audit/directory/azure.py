"""Azure Resource Manager implementation of the resource directory."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from azure.identity import AzureCliCredential, ClientSecretCredential, DefaultAzureCredential
from azure.mgmt.network import NetworkManagementClient
from azure.mgmt.resource import ResourceManagementClient, SubscriptionClient

from peering_audit.config import AzureSettings, Settings, load_settings
from peering_audit.directory.base import AccountHandle
from peering_audit.directory.errors import (
    CredentialBootstrapError,
    DirectoryError,
    FaultKind,
    classify_exception,
)
from peering_audit.domain.identifiers import parse_network_identifier, resource_group_of
from peering_audit.domain.models import UNKNOWN, AccountContext, NetworkContainer, PeeringLink

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Warned and PastDue subscriptions stay readable.
INACTIVE_STATES = frozenset({"Disabled", "Deleted"})


@dataclass(frozen=True)
class AzureClients:
    network: Any
    resources: Any


def build_credential(settings: AzureSettings) -> Any:
    if settings.auth_mode == "cli":
        return AzureCliCredential()
    if settings.auth_mode == "service-principal":
        secret = settings.client_secret.get_secret_value() if settings.client_secret else ""
        return ClientSecretCredential(settings.tenant_id, settings.client_id, secret)
    return DefaultAzureCredential()


def _enum_value(value: object) -> str | None:
    if value is None:
        return None
    return str(getattr(value, "value", value))


def peering_from_model(peering: Any) -> PeeringLink:
    remote = getattr(peering, "remote_virtual_network", None)
    return PeeringLink(
        name=peering.name or "",
        state=_enum_value(peering.peering_state) or UNKNOWN,
        remote=parse_network_identifier(getattr(remote, "id", None)),
        allow_virtual_network_access=bool(peering.allow_virtual_network_access),
        allow_forwarded_traffic=bool(peering.allow_forwarded_traffic),
        allow_gateway_transit=bool(peering.allow_gateway_transit),
        use_remote_gateways=bool(peering.use_remote_gateways),
        sync_level=_enum_value(getattr(peering, "peering_sync_level", None)),
    )


def container_from_model(vnet: Any, account_id: str) -> NetworkContainer:
    address_space = getattr(vnet, "address_space", None)
    prefixes = getattr(address_space, "address_prefixes", None) or ()
    return NetworkContainer(
        id=vnet.id or "",
        name=vnet.name or "",
        resource_group=resource_group_of(vnet.id, UNKNOWN),
        account_id=account_id,
        location=vnet.location or "",
        address_space=tuple(prefixes),
        subnet_count=len(vnet.subnets or ()),
        peerings=tuple(peering_from_model(p) for p in (vnet.virtual_network_peerings or ())),
    )


class AzureResourceDirectory:
    """Blocking SDK calls run on worker threads under an explicit deadline."""

    def __init__(
        self,
        credential: Any,
        *,
        management_scope: str = "https://management.azure.com/.default",
        call_timeout_seconds: float = 60.0,
        sdk_timeout_seconds: int = 30,
        max_retries: int = 2,
        client_factory: Callable[[str], AzureClients] | None = None,
        subscription_client: Any = None,
    ) -> None:
        self._credential = credential
        self._scope = management_scope
        self._call_timeout = call_timeout_seconds
        self._client_kwargs: dict[str, Any] = {
            "connection_timeout": sdk_timeout_seconds,
            "read_timeout": sdk_timeout_seconds,
            "retry_total": max_retries,
        }
        self._client_factory = client_factory or self._build_clients
        self._subscription_client = subscription_client

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "AzureResourceDirectory":
        settings = settings or load_settings()
        return cls(
            build_credential(settings.azure),
            management_scope=settings.azure.management_scope,
            call_timeout_seconds=settings.execution.call_timeout_seconds,
            sdk_timeout_seconds=settings.execution.sdk_timeout_seconds,
            max_retries=settings.execution.max_retries,
        )

    def _build_clients(self, account_id: str) -> AzureClients:
        return AzureClients(
            network=NetworkManagementClient(self._credential, account_id, **self._client_kwargs),
            resources=ResourceManagementClient(
                self._credential, account_id, **self._client_kwargs
            ),
        )

    def _subscriptions(self) -> Any:
        if self._subscription_client is None:
            self._subscription_client = SubscriptionClient(
                self._credential, **self._client_kwargs
            )
        return self._subscription_client

    async def _call(self, operation: str, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn, *args),
                timeout=self._call_timeout,
            )
        except DirectoryError:
            raise
        except Exception as exc:
            error = classify_exception(exc)
            logger.debug(
                "%s failed: kind=%s code=%s: %s",
                operation,
                error.kind.value,
                error.code,
                error,
            )
            raise error from exc

    async def verify_credential(self) -> None:
        try:
            await self._call("get_token", self._credential.get_token, self._scope)
        except DirectoryError as exc:
            raise CredentialBootstrapError(
                f"Could not obtain a management token: {exc}"
            ) from exc
        logger.info("Management credential verified (scope=%s)", self._scope)

    async def list_accounts(self) -> list[AccountContext]:
        subscriptions = await self._call(
            "list_subscriptions",
            lambda: list(self._subscriptions().subscriptions.list()),
        )
        return [
            AccountContext(
                account_id=sub.subscription_id,
                display_name=sub.display_name or sub.subscription_id,
                enabled=_enum_value(sub.state) not in INACTIVE_STATES,
                tenant_id=getattr(sub, "tenant_id", None),
            )
            for sub in subscriptions
        ]

    async def acquire_context(self, account_id: str) -> AccountHandle:
        subscription = await self._call(
            "get_subscription",
            self._subscriptions().subscriptions.get,
            account_id,
        )
        state = _enum_value(subscription.state)
        if state in INACTIVE_STATES:
            raise DirectoryError(
                f"Subscription {account_id} is {state}",
                FaultKind.ACCESS_DENIED,
                code="SubscriptionDisabled",
            )
        logger.debug("Acquired context for subscription %s", account_id)
        return AccountHandle(
            account_id=subscription.subscription_id or account_id,
            display_name=subscription.display_name or "",
            clients=self._client_factory(account_id),
        )

    async def list_containers(
        self,
        handle: AccountHandle,
        locations: Sequence[str] = (),
    ) -> list[NetworkContainer]:
        vnets = await self._call(
            "list_virtual_networks",
            lambda: list(handle.clients.network.virtual_networks.list_all()),
        )
        wanted = {location.lower() for location in locations}
        containers = [container_from_model(vnet, handle.account_id) for vnet in vnets]
        if wanted:
            containers = [c for c in containers if c.location.lower() in wanted]
        return containers

    async def get_container(
        self,
        handle: AccountHandle,
        resource_group: str,
        name: str,
    ) -> NetworkContainer:
        vnet = await self._call(
            "get_virtual_network",
            handle.clients.network.virtual_networks.get,
            resource_group,
            name,
        )
        return container_from_model(vnet, handle.account_id)

    async def get_resource_group(self, handle: AccountHandle, name: str) -> str:
        group = await self._call(
            "get_resource_group",
            handle.clients.resources.resource_groups.get,
            name,
        )
        return group.location or ""
