"""
VaultRecordStore — persistence contract consumed by VaultService.

A store keeps whole :class:`EncryptedVaultRecord` objects keyed by id, plus a
single :class:`AppSettings` slot. It never sees plaintext.
"""
import logging
from abc import ABC, abstractmethod

from ..models import AppSettings, EncryptedVaultRecord

logger = logging.getLogger("offpass.vault")

SETTINGS_KEY = "app-settings"


class VaultRecordStore(ABC):
    """Abstract async key-value store of encrypted vault records.

    Implementations raise :class:`~offpass.exceptions.StorageError` when the
    backend fails. Use as ``async with store:`` to scope open/close.
    """

    def __init__(self):
        self._opened = False

    @property
    def is_open(self) -> bool:
        return self._opened

    async def open(self) -> None:
        """Acquire backend resources. Idempotent."""
        self._opened = True

    async def close(self) -> None:
        """Release backend resources. Idempotent."""
        self._opened = False

    async def __aenter__(self) -> "VaultRecordStore":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @abstractmethod
    async def put(self, record: EncryptedVaultRecord) -> None:
        """Insert or replace a record by id."""

    @abstractmethod
    async def get(self, vault_id: str) -> EncryptedVaultRecord | None:
        """Return the record, or None if absent."""

    @abstractmethod
    async def get_all(self) -> list[EncryptedVaultRecord]:
        """Return every stored record."""

    @abstractmethod
    async def delete(self, vault_id: str) -> None:
        """Remove a record. Removing an absent id is a no-op."""

    @abstractmethod
    async def get_settings(self) -> AppSettings | None:
        """Return the singleton settings, or None if never saved."""

    @abstractmethod
    async def save_settings(self, settings: AppSettings) -> None:
        """Overwrite the singleton settings."""
