"""Resource directory protocol and per-account handles."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from peering_audit.domain.models import AccountContext, NetworkContainer


@dataclass(frozen=True)
class AccountHandle:
    """Explicit authorization context for one subscription.

    Carries the SDK clients bound to the subscription; every directory call that
    targets a subscription receives its handle instead of relying on shared state.
    """

    account_id: str
    display_name: str = ""
    clients: Any = field(default=None, repr=False, compare=False)

    def matches(self, account_id: str) -> bool:
        return self.account_id.lower() == account_id.lower()


class ResourceDirectory(Protocol):
    """Remote inventory operations used by the audit. All calls raise DirectoryError."""

    async def verify_credential(self) -> None: ...

    async def list_accounts(self) -> list[AccountContext]: ...

    async def acquire_context(self, account_id: str) -> AccountHandle: ...

    async def list_containers(
        self,
        handle: AccountHandle,
        locations: Sequence[str] = (),
    ) -> list[NetworkContainer]: ...

    async def get_container(
        self,
        handle: AccountHandle,
        resource_group: str,
        name: str,
    ) -> NetworkContainer: ...

    async def get_resource_group(self, handle: AccountHandle, name: str) -> str: ...
