"""In-process store, mainly for tests and ephemeral use."""
from ..models import AppSettings, EncryptedVaultRecord
from .base import SETTINGS_KEY, VaultRecordStore


class MemoryStore(VaultRecordStore):
    """Dict-backed store. Records are copied in and out."""

    def __init__(self):
        super().__init__()
        self._records: dict[str, EncryptedVaultRecord] = {}
        self._slots: dict[str, AppSettings] = {}

    async def put(self, record: EncryptedVaultRecord) -> None:
        self._records[record.id] = record.model_copy(deep=True)

    async def get(self, vault_id: str) -> EncryptedVaultRecord | None:
        record = self._records.get(vault_id)
        return record.model_copy(deep=True) if record is not None else None

    async def get_all(self) -> list[EncryptedVaultRecord]:
        return [r.model_copy(deep=True) for r in self._records.values()]

    async def delete(self, vault_id: str) -> None:
        self._records.pop(vault_id, None)

    async def get_settings(self) -> AppSettings | None:
        settings = self._slots.get(SETTINGS_KEY)
        return settings.model_copy(deep=True) if settings is not None else None

    async def save_settings(self, settings: AppSettings) -> None:
        self._slots[SETTINGS_KEY] = settings.model_copy(deep=True)
