"""
Vault Models — Credentials, vault payloads and persisted records.

Attributes are snake_case; the serialized form (encrypted payload, store
documents and backups) uses camelCase aliases. Timestamps are integer
milliseconds since the Unix epoch.
"""
import time
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .config import DEFAULT_AUTO_LOCK_TIMEOUT, PBKDF2_ITERATIONS

DEFAULT_CATEGORIES = ["Login", "Financial", "Personal", "Work"]
DEFAULT_CATEGORY = "Login"


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


class VaultModel(BaseModel):
    """Base for all serialized models: camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def dump(self) -> dict:
        """Return the JSON-ready, aliased form of the model."""
        return self.model_dump(mode="json", by_alias=True)


class Credential(VaultModel):
    """One stored login record."""

    id: str = Field(default_factory=new_id)
    title: str
    username: str = ""
    password: str = ""
    url: Optional[str] = None
    notes: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[list[str]] = None
    created_at: int = Field(default_factory=now_ms)
    last_modified: int = Field(default_factory=now_ms)


# fields a caller may not set or override on a credential
IMMUTABLE_CREDENTIAL_FIELDS = frozenset({"id", "created_at"})


class VaultSettings(VaultModel):
    auto_lock_timeout: int = Field(default=DEFAULT_AUTO_LOCK_TIMEOUT, ge=0)
    categories: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CATEGORIES)
    )
    default_category: str = DEFAULT_CATEGORY

    @field_validator("categories")
    @classmethod
    def unique_categories(cls, v: list[str]) -> list[str]:
        """Categories behave as an ordered set."""
        return list(dict.fromkeys(v))


class VaultData(VaultModel):
    """Decrypted vault payload. Exists only in memory."""

    credentials: list[Credential] = Field(default_factory=list)
    settings: VaultSettings = Field(default_factory=VaultSettings)

    @field_validator("settings", mode="before")
    @classmethod
    def default_settings(cls, v):
        return VaultSettings() if v is None else v

    @model_validator(mode="after")
    def unique_credential_ids(self) -> "VaultData":
        seen: set[str] = set()
        for credential in self.credentials:
            if credential.id in seen:
                raise ValueError(f"Duplicate credential id: {credential.id}")
            seen.add(credential.id)
        return self

    def find(self, credential_id: str) -> int:
        """Return the index of a credential, or -1."""
        for idx, credential in enumerate(self.credentials):
            if credential.id == credential_id:
                return idx
        return -1


class Vault(VaultModel):
    """Public vault metadata."""

    id: str
    name: str
    created_at: int
    last_accessed: int
    last_modified: int


class EncryptedVaultRecord(VaultModel):
    """The only persisted form of a vault.

    ``ciphertext``, ``iv`` and ``salt`` are base64 strings and always change
    together.
    """

    id: str
    name: str
    ciphertext: str = Field(alias="encryptedData")
    iv: str
    salt: str
    iterations: int = Field(default=PBKDF2_ITERATIONS, ge=1)
    created_at: int
    last_accessed: int
    last_modified: int

    def meta(self) -> Vault:
        return Vault(
            id=self.id,
            name=self.name,
            created_at=self.created_at,
            last_accessed=self.last_accessed,
            last_modified=self.last_modified,
        )


class AppSettings(VaultModel):
    """Application-wide settings stored in the singleton slot."""

    dark_mode: bool = False
    auto_lock_timeout: int = Field(default=DEFAULT_AUTO_LOCK_TIMEOUT, ge=0)
    default_vault_id: Optional[str] = None


class PasswordOptions(BaseModel):
    length: int = 16
    uppercase: bool = True
    lowercase: bool = True
    numbers: bool = True
    symbols: bool = True
