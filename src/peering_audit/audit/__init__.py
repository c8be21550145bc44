"""Peering reconciliation engine."""

from peering_audit.audit.aggregator import AuditSummary, summarize
from peering_audit.audit.context import (
    ContextScope,
    get_active_account,
    scoped_account,
    with_context,
)
from peering_audit.audit.prober import ExistenceProber, ProbeTrace, classify_trace
from peering_audit.audit.walker import (
    EnumerationFailure,
    TopologyWalker,
    WalkResult,
    WalkTarget,
)

__all__ = [
    "AuditSummary",
    "ContextScope",
    "EnumerationFailure",
    "ExistenceProber",
    "ProbeTrace",
    "TopologyWalker",
    "WalkResult",
    "WalkTarget",
    "classify_trace",
    "get_active_account",
    "scoped_account",
    "summarize",
    "with_context",
]
