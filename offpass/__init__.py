"""Offpass — Local encrypted credential vaults.

Security Note (Threat Model):
    Vault contents are decrypted in process memory while a vault is open.
    A memory dump of the application process could expose the master
    password and the decrypted credentials held by an open VaultSession.
    This is an accepted limitation — mitigation requires OS-level secure
    memory which is out of scope.
"""

from .version import __version__
from .config import VaultConfig
from .exceptions import (
    VaultError,
    NotFound,
    IncorrectPasswordOrCorrupt,
    DecryptionError,
    ValidationError,
    VaultLockedError,
    Conflict,
    StorageError,
    InvalidFormat,
)
from .models import (
    Credential,
    VaultData,
    VaultSettings,
    Vault,
    EncryptedVaultRecord,
    AppSettings,
    PasswordOptions,
)
from .storage import VaultRecordStore, MemoryStore, FileStore
from .service import VaultService
from .session import VaultSession
from .generator import generate_password, check_password_strength, strength_label
from .backup import export_data, import_data

__all__ = [
    "__version__",
    "VaultConfig",
    "VaultError",
    "NotFound",
    "IncorrectPasswordOrCorrupt",
    "DecryptionError",
    "ValidationError",
    "VaultLockedError",
    "Conflict",
    "StorageError",
    "InvalidFormat",
    "Credential",
    "VaultData",
    "VaultSettings",
    "Vault",
    "EncryptedVaultRecord",
    "AppSettings",
    "PasswordOptions",
    "VaultRecordStore",
    "MemoryStore",
    "FileStore",
    "VaultService",
    "VaultSession",
    "generate_password",
    "check_password_strength",
    "strength_label",
    "export_data",
    "import_data",
]
