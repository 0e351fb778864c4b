"""
Vault Backup — Export and import of encrypted vault records.

Backups contain only encrypted records and application settings; they are
as safe to store as the vault store itself. Format::

    {"vaults": [EncryptedVaultRecord, ...], "settings": AppSettings | null,
     "exportDate": "<ISO-8601>", "version": 1}
"""
import logging
from datetime import datetime, timezone

import orjson
from pydantic import ValidationError as PydanticValidationError

from .config import BACKUP_VERSION
from .exceptions import InvalidFormat
from .models import AppSettings, EncryptedVaultRecord
from .storage import VaultRecordStore

logger = logging.getLogger("offpass.vault")


async def export_data(store: VaultRecordStore) -> str:
    """Serialize every vault record and the app settings to a JSON string.

    Args:
        store: Store to read from.

    Returns:
        Backup document as text.
    """
    records = await store.get_all()
    settings = await store.get_settings()
    document = {
        "vaults": [record.dump() for record in records],
        "settings": settings.dump() if settings is not None else None,
        "exportDate": datetime.now(timezone.utc).isoformat(),
        "version": BACKUP_VERSION,
    }
    logger.info("Exported backup with %d vault(s)", len(records))
    return orjson.dumps(document).decode("utf-8")


def parse_backup(data: str | bytes) -> tuple[list[EncryptedVaultRecord], AppSettings | None]:
    """Validate a backup document without touching any store.

    Raises:
        InvalidFormat: If the document is not a valid backup.
    """
    try:
        document = orjson.loads(data)
    except orjson.JSONDecodeError as err:
        raise InvalidFormat("Backup is not valid JSON") from err
    if not isinstance(document, dict):
        raise InvalidFormat()
    vaults = document.get("vaults")
    if not isinstance(vaults, list):
        raise InvalidFormat("Backup has no vault list")
    try:
        records = [EncryptedVaultRecord.model_validate(raw) for raw in vaults]
        raw_settings = document.get("settings")
        settings = (
            AppSettings.model_validate(raw_settings) if raw_settings else None
        )
    except PydanticValidationError as err:
        raise InvalidFormat(f"Backup contains an invalid entry: {err}") from err
    return records, settings


async def import_data(store: VaultRecordStore, data: str | bytes) -> int:
    """Upsert every vault record of a backup into ``store``.

    Records are matched by id. Settings, when present, overwrite the stored
    ones. The document is validated in full before anything is written.

    Returns:
        Number of vault records imported.

    Raises:
        InvalidFormat: If the document is not a valid backup.
    """
    records, settings = parse_backup(data)
    for record in records:
        await store.put(record)
    if settings is not None:
        await store.save_settings(settings)
    logger.info("Imported backup with %d vault(s)", len(records))
    return len(records)
