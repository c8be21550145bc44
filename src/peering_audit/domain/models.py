"""Domain objects for the peering audit."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from peering_audit.utils.time import utc_now

UNKNOWN = "Unknown"


class ValidationStatus(str, Enum):
    VALIDATED = "Validated"
    ACCESS_DENIED = "AccessDenied"
    NOT_FOUND = "NotFound"
    ERROR = "Error"
    NOT_VALIDATED = "NotValidated"


@dataclass(frozen=True)
class AccountContext:
    """One subscription as listed for the caller."""

    account_id: str
    display_name: str
    enabled: bool
    tenant_id: str | None = None


@dataclass(frozen=True)
class RemoteReference:
    account_id: str
    resource_group: str
    container_name: str
    raw_id: str | None = None
    parsed: bool = True

    @classmethod
    def unparseable(cls, raw_id: str | None = None) -> "RemoteReference":
        return cls(
            account_id=UNKNOWN,
            resource_group=UNKNOWN,
            container_name=UNKNOWN,
            raw_id=raw_id,
            parsed=False,
        )


@dataclass(frozen=True)
class PeeringLink:
    name: str
    state: str
    remote: RemoteReference
    allow_virtual_network_access: bool = False
    allow_forwarded_traffic: bool = False
    allow_gateway_transit: bool = False
    use_remote_gateways: bool = False
    sync_level: str | None = None

    @property
    def gateway_dependent(self) -> bool:
        return self.allow_gateway_transit or self.use_remote_gateways


@dataclass(frozen=True)
class ContainerSnapshot:
    location: str
    address_space: tuple[str, ...]
    subnet_count: int


@dataclass(frozen=True)
class NetworkContainer:
    id: str
    name: str
    resource_group: str
    account_id: str
    location: str
    address_space: tuple[str, ...] = ()
    subnet_count: int = 0
    peerings: tuple[PeeringLink, ...] = ()

    def snapshot(self) -> ContainerSnapshot:
        return ContainerSnapshot(
            location=self.location,
            address_space=self.address_space,
            subnet_count=self.subnet_count,
        )


@dataclass(frozen=True)
class ValidationOutcome:
    status: ValidationStatus
    message: str
    snapshot: ContainerSnapshot | None = None
    checked_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class ValidationRecord:
    """A ValidationOutcome with its owning link and container denormalized."""

    source_account_id: str
    source_account_name: str
    source_resource_group: str
    source_container: str
    source_location: str
    peering_name: str
    peering_state: str
    peering_sync_level: str | None
    allow_virtual_network_access: bool
    allow_forwarded_traffic: bool
    allow_gateway_transit: bool
    use_remote_gateways: bool
    remote_account_id: str
    remote_resource_group: str
    remote_container: str
    remote_id: str | None
    outcome: ValidationOutcome

    @classmethod
    def build(
        cls,
        account: AccountContext,
        container: NetworkContainer,
        link: PeeringLink,
        outcome: ValidationOutcome,
    ) -> "ValidationRecord":
        return cls(
            source_account_id=account.account_id,
            source_account_name=account.display_name,
            source_resource_group=container.resource_group,
            source_container=container.name,
            source_location=container.location,
            peering_name=link.name,
            peering_state=link.state,
            peering_sync_level=link.sync_level,
            allow_virtual_network_access=link.allow_virtual_network_access,
            allow_forwarded_traffic=link.allow_forwarded_traffic,
            allow_gateway_transit=link.allow_gateway_transit,
            use_remote_gateways=link.use_remote_gateways,
            remote_account_id=link.remote.account_id,
            remote_resource_group=link.remote.resource_group,
            remote_container=link.remote.container_name,
            remote_id=link.remote.raw_id,
            outcome=outcome,
        )

    @property
    def status(self) -> ValidationStatus:
        return self.outcome.status

    @property
    def gateway_dependent(self) -> bool:
        return self.allow_gateway_transit or self.use_remote_gateways

    @property
    def cross_account(self) -> bool:
        return self.remote_account_id.lower() != self.source_account_id.lower()

    def to_row(self) -> dict[str, object]:
        """Flat mapping for CSV/report writers."""
        snapshot = self.outcome.snapshot
        return {
            "SourceSubscriptionId": self.source_account_id,
            "SourceSubscriptionName": self.source_account_name,
            "SourceResourceGroup": self.source_resource_group,
            "SourceVNet": self.source_container,
            "SourceLocation": self.source_location,
            "PeeringName": self.peering_name,
            "PeeringState": self.peering_state,
            "PeeringSyncLevel": self.peering_sync_level or "",
            "AllowVirtualNetworkAccess": self.allow_virtual_network_access,
            "AllowForwardedTraffic": self.allow_forwarded_traffic,
            "AllowGatewayTransit": self.allow_gateway_transit,
            "UseRemoteGateways": self.use_remote_gateways,
            "RemoteSubscriptionId": self.remote_account_id,
            "RemoteResourceGroup": self.remote_resource_group,
            "RemoteVNet": self.remote_container,
            "RemoteVNetId": self.remote_id or "",
            "ValidationStatus": self.outcome.status.value,
            "ValidationMessage": self.outcome.message,
            "RemoteLocation": snapshot.location if snapshot else "",
            "RemoteAddressSpace": ";".join(snapshot.address_space) if snapshot else "",
            "RemoteSubnetCount": snapshot.subnet_count if snapshot else "",
            "CheckedAt": self.outcome.checked_at.isoformat(),
        }
