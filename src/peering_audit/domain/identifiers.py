"""Parsing of hierarchical ARM resource identifiers."""

from __future__ import annotations

from peering_audit.domain.models import RemoteReference

# /subscriptions/{id}/resourceGroups/{rg}/providers/{namespace}/{type}/{name}
MIN_SEGMENTS = 9


def _segments(raw_id: str) -> list[str]:
    return raw_id.strip().split("/")


def parse_network_identifier(raw_id: str | None) -> RemoteReference:
    """Return the (subscription, resource group, name) triple or the Unknown sentinel.

    Never raises; anything that is not a full resource path yields a reference with
    ``parsed=False`` so callers can skip remote lookups for it.
    """
    if not isinstance(raw_id, str) or not raw_id.strip():
        return RemoteReference.unparseable(raw_id if isinstance(raw_id, str) else None)

    parts = _segments(raw_id)
    if len(parts) < MIN_SEGMENTS or parts[0] != "":
        return RemoteReference.unparseable(raw_id)
    if (
        parts[1].lower() != "subscriptions"
        or parts[3].lower() != "resourcegroups"
        or parts[5].lower() != "providers"
    ):
        return RemoteReference.unparseable(raw_id)

    account_id, resource_group, name = parts[2], parts[4], parts[8]
    if not (account_id and resource_group and name):
        return RemoteReference.unparseable(raw_id)

    return RemoteReference(
        account_id=account_id,
        resource_group=resource_group,
        container_name=name,
        raw_id=raw_id,
    )


def resource_group_of(raw_id: str | None, default: str = "") -> str:
    """Resource group segment of a resource id."""
    ref = parse_network_identifier(raw_id)
    return ref.resource_group if ref.parsed else default
