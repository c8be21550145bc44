"""Resource directory access."""

from peering_audit.directory.base import AccountHandle, ResourceDirectory
from peering_audit.directory.cache import ContextCache
from peering_audit.directory.errors import (
    CredentialBootstrapError,
    DirectoryError,
    FaultKind,
    classify_exception,
)

__all__ = [
    "AccountHandle",
    "ContextCache",
    "CredentialBootstrapError",
    "DirectoryError",
    "FaultKind",
    "ResourceDirectory",
    "classify_exception",
]
