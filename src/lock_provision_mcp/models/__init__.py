"""Data models for provisioning sessions and persisted lock records."""

from .session import ProvisioningSession, ProvisioningState
from .lock_store import JsonLockStore, LockRecord, MemoryLockStore
