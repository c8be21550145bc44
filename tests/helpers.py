"""In-memory resource directory and builders shared by the tests."""

from __future__ import annotations

from collections.abc import Sequence

from peering_audit.directory.base import AccountHandle
from peering_audit.directory.errors import (
    CredentialBootstrapError,
    DirectoryError,
    FaultKind,
)
from peering_audit.domain.identifiers import parse_network_identifier
from peering_audit.domain.models import AccountContext, NetworkContainer, PeeringLink

SUB_A = "11111111-1111-1111-1111-111111111111"
SUB_B = "22222222-2222-2222-2222-222222222222"
SUB_C = "33333333-3333-3333-3333-333333333333"


def vnet_id(account_id: str, resource_group: str, name: str) -> str:
    return (
        f"/subscriptions/{account_id}/resourceGroups/{resource_group}"
        f"/providers/Microsoft.Network/virtualNetworks/{name}"
    )


def make_link(
    name: str,
    remote_account: str,
    remote_group: str,
    remote_name: str,
    **flags: bool,
) -> PeeringLink:
    return PeeringLink(
        name=name,
        state="Connected",
        remote=parse_network_identifier(vnet_id(remote_account, remote_group, remote_name)),
        **flags,
    )


def make_vnet(
    account_id: str,
    resource_group: str,
    name: str,
    peerings: Sequence[PeeringLink] = (),
    location: str = "westeurope",
    address_space: Sequence[str] = ("10.0.0.0/16",),
    subnet_count: int = 2,
) -> NetworkContainer:
    return NetworkContainer(
        id=vnet_id(account_id, resource_group, name),
        name=name,
        resource_group=resource_group,
        account_id=account_id,
        location=location,
        address_space=tuple(address_space),
        subnet_count=subnet_count,
        peerings=tuple(peerings),
    )


class FakeDirectory:
    """Records every remote call; visibility is configured per subscription."""

    def __init__(self) -> None:
        self.accounts: list[AccountContext] = []
        self.calls: list[tuple[str, ...]] = []
        self.denied_accounts: set[str] = set()
        self.acquire_faults: dict[str, Exception] = {}
        self.listing_faults: dict[str, Exception] = {}
        self.container_faults: dict[tuple[str, str, str], Exception] = {}
        self.resource_group_faults: dict[tuple[str, str], Exception] = {}
        self.bootstrap_error: CredentialBootstrapError | None = None
        self._containers: dict[str, list[NetworkContainer]] = {}
        self._groups: dict[str, set[str]] = {}

    def add_account(self, account_id: str, name: str = "", enabled: bool = True) -> None:
        self.accounts.append(
            AccountContext(account_id=account_id, display_name=name or account_id, enabled=enabled)
        )

    def add_container(self, container: NetworkContainer) -> None:
        key = container.account_id.lower()
        self._containers.setdefault(key, []).append(container)
        self.add_resource_group(container.account_id, container.resource_group)

    def add_resource_group(self, account_id: str, name: str) -> None:
        self._groups.setdefault(account_id.lower(), set()).add(name.lower())

    def calls_named(self, name: str) -> list[tuple[str, ...]]:
        return [call for call in self.calls if call[0] == name]

    async def verify_credential(self) -> None:
        self.calls.append(("verify_credential",))
        if self.bootstrap_error is not None:
            raise self.bootstrap_error

    async def list_accounts(self) -> list[AccountContext]:
        self.calls.append(("list_accounts",))
        return list(self.accounts)

    async def acquire_context(self, account_id: str) -> AccountHandle:
        self.calls.append(("acquire_context", account_id))
        if account_id in self.acquire_faults:
            raise self.acquire_faults[account_id]
        if account_id in self.denied_accounts:
            raise DirectoryError(
                f"The client does not have authorization over subscription {account_id}",
                FaultKind.ACCESS_DENIED,
                code="AuthorizationFailed",
            )
        return AccountHandle(account_id=account_id, display_name=f"name-{account_id[:4]}")

    async def list_containers(
        self,
        handle: AccountHandle,
        locations: Sequence[str] = (),
    ) -> list[NetworkContainer]:
        self.calls.append(("list_containers", handle.account_id))
        if handle.account_id in self.listing_faults:
            raise self.listing_faults[handle.account_id]
        containers = list(self._containers.get(handle.account_id.lower(), []))
        if locations:
            containers = [c for c in containers if c.location.lower() in locations]
        return containers

    async def get_container(
        self,
        handle: AccountHandle,
        resource_group: str,
        name: str,
    ) -> NetworkContainer:
        self.calls.append(("get_container", handle.account_id, resource_group, name))
        key = (handle.account_id, resource_group, name)
        if key in self.container_faults:
            raise self.container_faults[key]
        for container in self._containers.get(handle.account_id.lower(), []):
            if (
                container.resource_group.lower() == resource_group.lower()
                and container.name.lower() == name.lower()
            ):
                return container
        raise DirectoryError(
            f"The Resource '{name}' under resource group '{resource_group}' was not found.",
            FaultKind.NOT_FOUND,
            code="ResourceNotFound",
        )

    async def get_resource_group(self, handle: AccountHandle, name: str) -> str:
        self.calls.append(("get_resource_group", handle.account_id, name))
        key = (handle.account_id, name)
        if key in self.resource_group_faults:
            raise self.resource_group_faults[key]
        if name.lower() in self._groups.get(handle.account_id.lower(), set()):
            return "westeurope"
        raise DirectoryError(
            f"Resource group '{name}' could not be found.",
            FaultKind.NOT_FOUND,
            code="ResourceGroupNotFound",
        )
