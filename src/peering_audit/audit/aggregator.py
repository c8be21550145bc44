"""Summary counts and attention lists over validation records."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from peering_audit.domain.models import ValidationRecord, ValidationStatus


@dataclass(frozen=True)
class AuditSummary:
    counts: Mapping[ValidationStatus, int]
    total: int
    cross_account: int
    gateway_dependencies: tuple[ValidationRecord, ...]
    stale_candidates: tuple[ValidationRecord, ...]
    needs_confirmation: tuple[ValidationRecord, ...]

    def count(self, status: ValidationStatus) -> int:
        return self.counts.get(status, 0)

    def status_counts(self) -> dict[str, int]:
        return {status.value: self.count(status) for status in ValidationStatus}

    def as_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "cross_account": self.cross_account,
            "counts": self.status_counts(),
            "gateway_dependencies": [_link_label(r) for r in self.gateway_dependencies],
            "stale_candidates": [_link_label(r) for r in self.stale_candidates],
            "needs_confirmation": [_link_label(r) for r in self.needs_confirmation],
        }


def _link_label(record: ValidationRecord) -> str:
    return (
        f"{record.source_account_id}/{record.source_resource_group}/"
        f"{record.source_container}:{record.peering_name}"
    )


def summarize(records: Iterable[ValidationRecord]) -> AuditSummary:
    snapshot = tuple(records)
    counter = Counter(record.status for record in snapshot)
    return AuditSummary(
        counts={status: counter.get(status, 0) for status in ValidationStatus},
        total=len(snapshot),
        cross_account=sum(1 for r in snapshot if r.cross_account),
        gateway_dependencies=tuple(r for r in snapshot if r.gateway_dependent),
        stale_candidates=tuple(
            r for r in snapshot if r.status is ValidationStatus.NOT_FOUND
        ),
        needs_confirmation=tuple(
            r for r in snapshot if r.status is ValidationStatus.ACCESS_DENIED
        ),
    )
