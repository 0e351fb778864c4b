"""
VaultSession — one open vault, its decrypted contents and its auto-lock timer.

The session is the only place decrypted vault contents live between calls.
Every mutation goes through :class:`VaultService`, which re-opens the vault
from the store, so the session copy is never trusted for writes.

States: ``closed`` → ``open(password)`` → ``open`` → ``lock()`` / auto-lock /
master password change → ``closed``.
"""
import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Optional

from .exceptions import VaultLockedError
from .models import Credential, Vault, VaultData, VaultSettings
from .service import VaultService

logger = logging.getLogger("offpass.vault")


class VaultSession:
    """An explicit open-vault session.

    Args:
        service: VaultService used for every operation.
        vault_id: Vault this session is bound to.
    """

    CLOSED = "closed"
    OPEN = "open"

    def __init__(self, service: VaultService, vault_id: str):
        self._service = service
        self._vault_id = vault_id
        self._vault: Optional[Vault] = None
        self._data: Optional[VaultData] = None
        self._password: Optional[str] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    def __repr__(self) -> str:
        return f"<VaultSession vault={self._vault_id} state={self.state}>"

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def vault_id(self) -> str:
        return self._vault_id

    @property
    def state(self) -> str:
        return self.OPEN if self._data is not None else self.CLOSED

    @property
    def is_open(self) -> bool:
        return self._data is not None

    @property
    def vault(self) -> Optional[Vault]:
        return self._vault

    @property
    def data(self) -> VaultData:
        self._require_open()
        return self._data.model_copy(deep=True)

    @property
    def credentials(self) -> list[Credential]:
        return self.data.credentials

    @property
    def settings(self) -> VaultSettings:
        return self.data.settings

    # ------------------------------------------------------------------
    # Auto-lock
    # ------------------------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _arm_timer(self) -> None:
        self._cancel_timer()
        timeout = self._data.settings.auto_lock_timeout if self._data else 0
        if timeout > 0:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(timeout * 60, self._auto_lock)

    def _auto_lock(self) -> None:
        logger.info("Auto-lock: vault=%s", self._vault_id)
        self._timer = None
        self.lock()

    def touch(self) -> None:
        """Restart the auto-lock countdown."""
        self._require_open()
        self._arm_timer()

    # ------------------------------------------------------------------
    # Open / lock
    # ------------------------------------------------------------------

    def _require_open(self) -> str:
        if self._data is None or self._password is None:
            raise VaultLockedError()
        return self._password

    async def open(self, password: str) -> VaultData:
        """Unlock the vault.

        Raises:
            NotFound: No such vault.
            IncorrectPasswordOrCorrupt: Wrong password; the session stays
                closed.
        """
        vault, data = await self._service.open_vault(self._vault_id, password)
        self._vault = vault
        self._data = data
        self._password = password
        self._arm_timer()
        return self.data

    def lock(self) -> None:
        """Drop decrypted contents and the password. Idempotent."""
        self._cancel_timer()
        self._data = None
        self._password = None

    async def __aenter__(self) -> "VaultSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.lock()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    # The service call may outlive a lock() issued while it was awaited;
    # the write still lands but the local copy is left cleared.

    async def add_credential(self, fields: Mapping[str, Any]) -> Credential:
        password = self._require_open()
        credential = await self._service.add_credential(
            self._vault_id, password, fields
        )
        if self._data is not None:
            self._data.credentials.append(credential)
            self._arm_timer()
        return credential

    async def update_credential(
        self, credential_id: str, updates: Mapping[str, Any]
    ) -> Credential:
        password = self._require_open()
        credential = await self._service.update_credential(
            self._vault_id, password, credential_id, updates
        )
        if self._data is not None:
            idx = self._data.find(credential_id)
            if idx >= 0:
                self._data.credentials[idx] = credential
            self._arm_timer()
        return credential

    async def delete_credential(self, credential_id: str) -> None:
        password = self._require_open()
        await self._service.delete_credential(
            self._vault_id, password, credential_id
        )
        if self._data is not None:
            idx = self._data.find(credential_id)
            if idx >= 0:
                del self._data.credentials[idx]
            self._arm_timer()

    async def update_settings(self, settings: Mapping[str, Any]) -> VaultSettings:
        password = self._require_open()
        updated = await self._service.update_vault_settings(
            self._vault_id, password, settings
        )
        if self._data is not None:
            self._data.settings = updated.model_copy(deep=True)
            self._arm_timer()
        return updated

    async def rename(self, new_name: str) -> Vault:
        password = self._require_open()
        self._vault = await self._service.rename_vault(
            self._vault_id, password, new_name
        )
        if self._data is not None:
            self._arm_timer()
        return self._vault

    async def change_master_password(
        self, current_password: str, new_password: str
    ) -> Vault:
        """Re-key the vault, then lock the session.

        The session must be open; ``current_password`` is still verified by
        the service.
        """
        self._require_open()
        self._vault = await self._service.change_master_password(
            self._vault_id, current_password, new_password
        )
        self.lock()
        return self._vault
