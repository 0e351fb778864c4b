"""Persistence backends for encrypted vault records."""

from .base import VaultRecordStore, SETTINGS_KEY
from .memory import MemoryStore
from .file import FileStore

__all__ = [
    "VaultRecordStore",
    "SETTINGS_KEY",
    "MemoryStore",
    "FileStore",
]
