"""
Vault Exceptions — Error taxonomy shared by every vault operation.

Security Note:
    Decryption failures are reported through a single exception type with a
    fixed message. Callers cannot tell a wrong password from corrupted data.
"""


class VaultError(Exception):
    """Base class for all vault errors."""

    default_message = "Vault error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(VaultError):
    """A vault or credential id is absent."""

    default_message = "Not found"


class IncorrectPasswordOrCorrupt(VaultError):
    """Unified decryption/authentication failure.

    Raised for a wrong master password, a failed tag check, truncated or
    malformed ciphertext. The message never changes.
    """

    default_message = "Incorrect master password or corrupted data"

    def __init__(self, message: str | None = None):
        # message is accepted for signature compatibility but never shown
        super().__init__(self.default_message)


DecryptionError = IncorrectPasswordOrCorrupt


class ValidationError(VaultError, ValueError):
    """Empty or invalid required input."""

    default_message = "Invalid input"


class VaultLockedError(ValidationError):
    """A session operation was attempted while the vault is closed."""

    default_message = "Vault is locked"


class Conflict(VaultError):
    """The stored record changed between read and write."""

    default_message = "Vault was modified concurrently"


class StorageError(VaultError):
    """The persistence backend failed."""

    default_message = "Storage failure"


class InvalidFormat(VaultError):
    """A backup document is malformed."""

    default_message = "Invalid backup format"
