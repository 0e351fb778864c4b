"""
VaultService — Create, open, mutate and delete encrypted vaults.

Provides the public API for vault orchestration:
- ``create_vault(name, password)`` — new vault with default contents
- ``open_vault(id, password)`` — decrypt and return metadata + contents
- ``update_vault(id, password, data, new_name)`` — re-encrypt new contents
- ``change_master_password(id, current, new)`` — re-salt and re-key
- ``add_credential`` / ``update_credential`` / ``delete_credential``
- ``update_vault_settings`` — merge per-vault settings
- ``get_vaults`` / ``delete_vault`` — metadata listing and removal

Every mutation decrypts the whole vault, changes the in-memory copy and
re-encrypts and writes the whole record with a single ``put``. The cost of
any operation is proportional to the vault size.

Operations on the same vault id are serialized with a per-vault
``asyncio.Lock``. Before writing, the stored record is compared with the one
that was read; if another writer changed it in between, ``Conflict`` is
raised and nothing is written.

Security Note:
    Never log passwords, keys, plaintext or ciphertext values. Only log
    vault ids, names and counts.
"""
import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from . import backup
from .config import VaultConfig
from .crypto import (
    b64decode,
    b64encode,
    decrypt,
    derive_key_async,
    encrypt,
)
from .exceptions import (
    Conflict,
    DecryptionError,
    NotFound,
    StorageError,
    ValidationError,
)
from .models import (
    IMMUTABLE_CREDENTIAL_FIELDS,
    AppSettings,
    Credential,
    EncryptedVaultRecord,
    Vault,
    VaultData,
    VaultSettings,
    new_id,
    now_ms,
)
from .storage import FileStore, MemoryStore, VaultRecordStore

logger = logging.getLogger("offpass.vault")


def normalize_fields(
    model: type[BaseModel], fields: Mapping[str, Any] | BaseModel
) -> dict[str, Any]:
    """Map a partial update keyed by field name or alias to field names.

    Raises:
        ValidationError: On unknown keys.
    """
    if isinstance(fields, BaseModel):
        return fields.model_dump(exclude_unset=True)
    aliases = {
        info.alias: name
        for name, info in model.model_fields.items()
        if info.alias
    }
    normalized: dict[str, Any] = {}
    for key, value in fields.items():
        name = aliases.get(key, key)
        if name not in model.model_fields:
            raise ValidationError(f"Unknown {model.__name__} field: {key}")
        normalized[name] = value
    return normalized


def _validate(model: type[BaseModel], values: dict[str, Any]) -> Any:
    try:
        return model.model_validate(values)
    except PydanticValidationError as err:
        raise ValidationError(str(err)) from err


def _require_text(value: Optional[str], what: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{what} cannot be empty")
    return value


class _VaultLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class VaultService:
    """Orchestrates vault operations over an injected record store.

    Args:
        store: Persistence backend for encrypted records.
        config: Key derivation and default settings.
    """

    def __init__(
        self,
        store: VaultRecordStore,
        config: Optional[VaultConfig] = None,
    ):
        self._store = store
        self._config = config or VaultConfig()
        self._locks: dict[str, _VaultLock] = {}

    @classmethod
    def from_config(cls, config: Optional[VaultConfig] = None) -> "VaultService":
        """Build a service over the store named by ``config.storage_path``.

        Falls back to an in-memory store when no path is configured. The
        store is opened and closed by using the service as an async context
        manager::

            async with VaultService.from_config(config) as service:
                vault_id = await service.create_vault("Personal", password)
        """
        config = config or VaultConfig.from_env()
        if config.storage_path is not None:
            store: VaultRecordStore = FileStore(config.storage_path)
        else:
            store = MemoryStore()
        return cls(store, config)

    @property
    def store(self) -> VaultRecordStore:
        return self._store

    @property
    def config(self) -> VaultConfig:
        return self._config

    async def __aenter__(self) -> "VaultService":
        await self._store.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._store.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _locked(self, vault_id: str) -> AsyncIterator[None]:
        """Hold the lock of ``vault_id``; the entry is dropped once unused."""
        entry = self._locks.get(vault_id)
        if entry is None:
            entry = self._locks[vault_id] = _VaultLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(vault_id) is entry:
                del self._locks[vault_id]

    async def _get_record(self, vault_id: str) -> EncryptedVaultRecord:
        record = await self._store.get(vault_id)
        if record is None:
            raise NotFound(f"Vault not found: {vault_id}")
        return record

    async def _unseal(
        self, record: EncryptedVaultRecord, password: str
    ) -> tuple[bytes, VaultData]:
        """Derive the key for ``record`` and decrypt its contents.

        Raises:
            DecryptionError: Wrong password or corrupted record.
        """
        salt = b64decode(record.salt)
        key, _ = await derive_key_async(password, salt, record.iterations)
        raw = decrypt(key, b64decode(record.ciphertext), b64decode(record.iv))
        try:
            return key, VaultData.model_validate(raw)
        except PydanticValidationError as err:
            raise DecryptionError() from err

    async def _open_unlocked(
        self, vault_id: str, password: str
    ) -> tuple[EncryptedVaultRecord, bytes, VaultData]:
        record = await self._get_record(vault_id)
        try:
            key, data = await self._unseal(record, password)
        except DecryptionError:
            logger.warning("Failed to unlock vault=%s", vault_id)
            raise
        return record, key, data

    async def _persist(
        self, read: EncryptedVaultRecord, updated: EncryptedVaultRecord
    ) -> None:
        """Write ``updated`` if the stored record is still ``read``.

        Raises:
            Conflict: The stored record changed since it was read.
            NotFound: The vault was deleted since it was read.
            StorageError: The backend failed.
        """
        current = await self._get_record(read.id)
        if (current.last_modified, current.iv) != (read.last_modified, read.iv):
            logger.warning("Concurrent modification of vault=%s", read.id)
            raise Conflict()
        try:
            await self._store.put(updated)
        except StorageError:
            logger.error("Failed to persist vault=%s", read.id)
            raise

    async def _seal_unlocked(
        self,
        record: EncryptedVaultRecord,
        key: bytes,
        data: VaultData,
        new_name: Optional[str] = None,
    ) -> Vault:
        """Encrypt ``data`` under ``key`` and replace ``record`` in the store."""
        ciphertext, iv = encrypt(key, data)
        now = now_ms()
        updated = record.model_copy(update={
            "name": record.name if new_name is None else new_name.strip(),
            "ciphertext": b64encode(ciphertext),
            "iv": b64encode(iv),
            "last_modified": now,
            "last_accessed": now,
        })
        await self._persist(record, updated)
        logger.debug(
            "Vault saved: vault=%s credentials=%d",
            record.id, len(data.credentials),
        )
        return updated.meta()

    # ------------------------------------------------------------------
    # Vault lifecycle
    # ------------------------------------------------------------------

    async def create_vault(self, name: str, password: str) -> str:
        """Create a new vault with default contents.

        Args:
            name: Display name, must not be blank.
            password: Master password, must not be empty.

        Returns:
            The new vault id.

        Raises:
            ValidationError: Blank name or empty password.
        """
        name = _require_text(name, "Vault name").strip()
        if not password:
            raise ValidationError("Master password cannot be empty")
        vault_id = new_id()
        data = VaultData(
            settings=VaultSettings(
                auto_lock_timeout=self._config.auto_lock_timeout
            )
        )
        iterations = self._config.pbkdf2_iterations
        key, salt = await derive_key_async(password, None, iterations)
        ciphertext, iv = encrypt(key, data)
        now = now_ms()
        record = EncryptedVaultRecord(
            id=vault_id,
            name=name,
            ciphertext=b64encode(ciphertext),
            iv=b64encode(iv),
            salt=b64encode(salt),
            iterations=iterations,
            created_at=now,
            last_accessed=now,
            last_modified=now,
        )
        await self._store.put(record)
        logger.info("Vault created: vault=%s name=%s", vault_id, name)
        return vault_id

    async def open_vault(
        self, vault_id: str, password: str
    ) -> tuple[Vault, VaultData]:
        """Decrypt a vault and record the access time.

        Raises:
            NotFound: No such vault.
            IncorrectPasswordOrCorrupt: Wrong password or corrupted data.
        """
        async with self._locked(vault_id):
            record, _, data = await self._open_unlocked(vault_id, password)
            updated = record.model_copy(update={"last_accessed": now_ms()})
            await self._persist(record, updated)
        logger.debug("Vault opened: vault=%s", vault_id)
        return updated.meta(), data

    async def update_vault(
        self,
        vault_id: str,
        password: str,
        data: VaultData | Mapping[str, Any],
        new_name: Optional[str] = None,
    ) -> Vault:
        """Replace a vault's contents (and optionally its name).

        The password is verified against the stored ciphertext before
        anything is written.

        Raises:
            NotFound: No such vault.
            IncorrectPasswordOrCorrupt: Wrong password or corrupted data.
            ValidationError: Blank new name.
        """
        if new_name is not None:
            _require_text(new_name, "Vault name")
        if isinstance(data, VaultData):
            data = data.model_dump()
        data = _validate(VaultData, dict(data))
        async with self._locked(vault_id):
            record, key, _ = await self._open_unlocked(vault_id, password)
            return await self._seal_unlocked(record, key, data, new_name)

    async def rename_vault(
        self, vault_id: str, password: str, new_name: str
    ) -> Vault:
        """Rename a vault, re-encrypting its unchanged contents."""
        _require_text(new_name, "Vault name")
        async with self._locked(vault_id):
            record, key, data = await self._open_unlocked(vault_id, password)
            return await self._seal_unlocked(record, key, data, new_name)

    async def change_master_password(
        self, vault_id: str, current_password: str, new_password: str
    ) -> Vault:
        """Re-key a vault under a new password with a fresh salt.

        Raises:
            NotFound: No such vault.
            IncorrectPasswordOrCorrupt: ``current_password`` is wrong.
            ValidationError: ``new_password`` is empty.
        """
        if not new_password:
            raise ValidationError("Master password cannot be empty")
        async with self._locked(vault_id):
            record, _, data = await self._open_unlocked(
                vault_id, current_password
            )
            iterations = self._config.pbkdf2_iterations
            key, salt = await derive_key_async(new_password, None, iterations)
            ciphertext, iv = encrypt(key, data)
            now = now_ms()
            updated = record.model_copy(update={
                "ciphertext": b64encode(ciphertext),
                "iv": b64encode(iv),
                "salt": b64encode(salt),
                "iterations": iterations,
                "last_modified": now,
                "last_accessed": now,
            })
            await self._persist(record, updated)
        logger.info("Master password changed: vault=%s", vault_id)
        return updated.meta()

    async def get_vaults(self) -> list[Vault]:
        """Return metadata for every stored vault without decrypting."""
        records = await self._store.get_all()
        return [record.meta() for record in records]

    async def delete_vault(self, vault_id: str) -> None:
        """Permanently remove a vault.

        Raises:
            NotFound: No such vault.
        """
        async with self._locked(vault_id):
            await self._get_record(vault_id)
            await self._store.delete(vault_id)
        settings = await self._store.get_settings()
        if settings is not None and settings.default_vault_id == vault_id:
            settings.default_vault_id = None
            await self._store.save_settings(settings)
        logger.info("Vault deleted: vault=%s", vault_id)

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    async def add_credential(
        self,
        vault_id: str,
        password: str,
        fields: Mapping[str, Any],
    ) -> Credential:
        """Append a new credential with a fresh id and timestamps.

        ``id``, ``createdAt`` and ``lastModified`` in ``fields`` are ignored.

        Raises:
            ValidationError: Missing or blank title, unknown fields.
        """
        values = normalize_fields(Credential, fields)
        for name in ("id", "created_at", "last_modified"):
            values.pop(name, None)
        _require_text(values.get("title"), "Credential title")
        now = now_ms()
        credential = _validate(Credential, {
            **values,
            "id": new_id(),
            "created_at": now,
            "last_modified": now,
        })
        async with self._locked(vault_id):
            record, key, data = await self._open_unlocked(vault_id, password)
            data.credentials.append(credential)
            await self._seal_unlocked(record, key, data)
        logger.debug(
            "Credential added: vault=%s credential=%s", vault_id, credential.id
        )
        return credential

    async def update_credential(
        self,
        vault_id: str,
        password: str,
        credential_id: str,
        updates: Mapping[str, Any],
    ) -> Credential:
        """Apply field overrides to a credential.

        ``id`` and ``createdAt`` cannot be changed; ``lastModified`` is set
        to the current time.

        Raises:
            NotFound: No credential with ``credential_id``.
        """
        changes = {
            name: value
            for name, value in normalize_fields(Credential, updates).items()
            if name not in IMMUTABLE_CREDENTIAL_FIELDS
        }
        if "title" in changes:
            _require_text(changes["title"], "Credential title")
        async with self._locked(vault_id):
            record, key, data = await self._open_unlocked(vault_id, password)
            idx = data.find(credential_id)
            if idx < 0:
                raise NotFound(f"Credential not found: {credential_id}")
            current = data.credentials[idx]
            credential = _validate(Credential, {
                **current.model_dump(),
                **changes,
                "last_modified": max(now_ms(), current.last_modified),
            })
            data.credentials[idx] = credential
            await self._seal_unlocked(record, key, data)
        logger.debug(
            "Credential updated: vault=%s credential=%s",
            vault_id, credential_id,
        )
        return credential

    async def delete_credential(
        self, vault_id: str, password: str, credential_id: str
    ) -> None:
        """Remove a credential by id.

        Raises:
            NotFound: No credential with ``credential_id``; nothing is written.
        """
        async with self._locked(vault_id):
            record, key, data = await self._open_unlocked(vault_id, password)
            idx = data.find(credential_id)
            if idx < 0:
                raise NotFound(f"Credential not found: {credential_id}")
            del data.credentials[idx]
            await self._seal_unlocked(record, key, data)
        logger.debug(
            "Credential deleted: vault=%s credential=%s",
            vault_id, credential_id,
        )

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def update_vault_settings(
        self,
        vault_id: str,
        password: str,
        settings: Mapping[str, Any],
    ) -> VaultSettings:
        """Merge ``settings`` into the vault's settings and persist."""
        changes = normalize_fields(VaultSettings, settings)
        async with self._locked(vault_id):
            record, key, data = await self._open_unlocked(vault_id, password)
            data.settings = _validate(VaultSettings, {
                **data.settings.model_dump(),
                **changes,
            })
            await self._seal_unlocked(record, key, data)
        return data.settings

    async def get_settings(self) -> AppSettings:
        """Return the app settings, or defaults if none were saved."""
        settings = await self._store.get_settings()
        if settings is None:
            return AppSettings(auto_lock_timeout=self._config.auto_lock_timeout)
        return settings

    async def save_settings(self, settings: AppSettings) -> None:
        await self._store.save_settings(settings)

    async def update_settings(self, changes: Mapping[str, Any]) -> AppSettings:
        """Merge ``changes`` into the app settings and persist."""
        current = await self.get_settings()
        settings = _validate(AppSettings, {
            **current.model_dump(),
            **normalize_fields(AppSettings, changes),
        })
        await self._store.save_settings(settings)
        return settings

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------

    async def export_backup(self) -> str:
        return await backup.export_data(self._store)

    async def import_backup(self, data: str | bytes) -> int:
        return await backup.import_data(self._store, data)
