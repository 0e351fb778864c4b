"""
Vault Configuration — Validated settings for key derivation and storage.

Reads overrides from environment variables:
    OFFPASS_PBKDF2_ITERATIONS = <integer, default 100000>
    OFFPASS_AUTO_LOCK_TIMEOUT = <minutes, default 15>
    OFFPASS_STORAGE_PATH = <path to the JSON vault store>

Security Note:
    The iteration count is a protocol parameter. It is written on every
    vault record, so changing it only affects vaults created or re-keyed
    afterwards. Never log passwords or key material.
"""
import os
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger("offpass.vault")

PBKDF2_ITERATIONS = 100_000
SALT_LENGTH = 16
DEFAULT_AUTO_LOCK_TIMEOUT = 15  # minutes
BACKUP_VERSION = 1


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable.

    Raises:
        ValueError: If the value is set but is not an integer.
    """
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as err:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from err


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    pbkdf2_iterations: int = Field(default=PBKDF2_ITERATIONS, ge=1)
    salt_length: int = Field(default=SALT_LENGTH)
    auto_lock_timeout: int = Field(default=DEFAULT_AUTO_LOCK_TIMEOUT, ge=0)
    storage_path: Optional[Path] = None
    backup_version: int = Field(default=BACKUP_VERSION, ge=1)

    @field_validator("salt_length")
    @classmethod
    def validate_salt_length(cls, v: int) -> int:
        """Salts are always 16 bytes."""
        if v != SALT_LENGTH:
            raise ValueError(f"salt_length must be {SALT_LENGTH}, got {v}")
        return v

    @field_validator("pbkdf2_iterations")
    @classmethod
    def warn_low_iterations(cls, v: int) -> int:
        """Warn when the round count is below the default."""
        if v < PBKDF2_ITERATIONS:
            logger.warning(
                "PBKDF2 iteration count %d is below the default %d",
                v, PBKDF2_ITERATIONS,
            )
        return v

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Returns:
            Populated VaultConfig instance.
        """
        storage_path = os.environ.get("OFFPASS_STORAGE_PATH") or None
        return cls(
            pbkdf2_iterations=_env_int(
                "OFFPASS_PBKDF2_ITERATIONS", PBKDF2_ITERATIONS
            ),
            auto_lock_timeout=_env_int(
                "OFFPASS_AUTO_LOCK_TIMEOUT", DEFAULT_AUTO_LOCK_TIMEOUT
            ),
            storage_path=Path(storage_path) if storage_path else None,
        )
