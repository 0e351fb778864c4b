"""
FileStore — encrypted vault records in a single JSON document.

Document layout::

    {"vaults": {"<id>": <EncryptedVaultRecord>, ...}, "settings": <AppSettings>|null}

Writes go to a temporary file that replaces the document atomically, so a
crash mid-write leaves the previous document intact. The temporary file is
fsynced before the replace and removed if the write fails.
"""
import os
import asyncio
import logging
from pathlib import Path
from typing import Any

import orjson
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import StorageError
from ..models import AppSettings, EncryptedVaultRecord
from .base import VaultRecordStore

logger = logging.getLogger("offpass.vault")


class FileStore(VaultRecordStore):
    """Store backed by one JSON file on the local filesystem."""

    def __init__(self, path: str | Path):
        super().__init__()
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def open(self) -> None:
        await asyncio.to_thread(self._ensure_parent)
        await super().open()

    def _ensure_parent(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise StorageError(f"Cannot create store directory: {err}") from err

    # ------------------------------------------------------------------
    # Blocking document I/O (run in worker threads)
    # ------------------------------------------------------------------

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {"vaults": {}, "settings": None}
        try:
            doc = orjson.loads(self._path.read_bytes())
        except (OSError, orjson.JSONDecodeError) as err:
            raise StorageError(f"Cannot read store {self._path}: {err}") from err
        if not isinstance(doc, dict) or not isinstance(doc.get("vaults", {}), dict):
            raise StorageError(f"Store {self._path} is not a vault document")
        doc.setdefault("vaults", {})
        doc.setdefault("settings", None)
        return doc

    def _write(self, doc: dict[str, Any]) -> None:
        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "wb") as f:
                f.write(orjson.dumps(doc, option=orjson.OPT_INDENT_2))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self._path)
        except OSError as err:
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                logger.warning("Could not remove temporary file %s", tmp)
            logger.error("Failed to write vault store %s: %s", self._path, err)
            raise StorageError(f"Cannot write store {self._path}: {err}") from err

    async def _load(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._read)

    async def _save(self, doc: dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, doc)

    @staticmethod
    def _to_record(raw: Any) -> EncryptedVaultRecord:
        try:
            return EncryptedVaultRecord.model_validate(raw)
        except PydanticValidationError as err:
            raise StorageError(f"Stored vault record is invalid: {err}") from err

    # ------------------------------------------------------------------
    # Store contract
    # ------------------------------------------------------------------

    async def put(self, record: EncryptedVaultRecord) -> None:
        async with self._lock:
            doc = await self._load()
            doc["vaults"][record.id] = record.dump()
            await self._save(doc)

    async def get(self, vault_id: str) -> EncryptedVaultRecord | None:
        async with self._lock:
            doc = await self._load()
        raw = doc["vaults"].get(vault_id)
        return self._to_record(raw) if raw is not None else None

    async def get_all(self) -> list[EncryptedVaultRecord]:
        async with self._lock:
            doc = await self._load()
        return [self._to_record(raw) for raw in doc["vaults"].values()]

    async def delete(self, vault_id: str) -> None:
        async with self._lock:
            doc = await self._load()
            if doc["vaults"].pop(vault_id, None) is not None:
                await self._save(doc)

    async def get_settings(self) -> AppSettings | None:
        async with self._lock:
            doc = await self._load()
        if doc["settings"] is None:
            return None
        try:
            return AppSettings.model_validate(doc["settings"])
        except PydanticValidationError as err:
            raise StorageError(f"Stored settings are invalid: {err}") from err

    async def save_settings(self, settings: AppSettings) -> None:
        async with self._lock:
            doc = await self._load()
            doc["settings"] = settings.dump()
            await self._save(doc)
