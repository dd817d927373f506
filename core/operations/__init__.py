"""Operation records, registry and per-site locking."""

from .registry import OperationNotFound, OperationRecord, OperationRegistry, OperationStatus
from .site_locks import SiteLocks

__all__ = ["OperationNotFound", "OperationRecord", "OperationRegistry", "OperationStatus", "SiteLocks"]
