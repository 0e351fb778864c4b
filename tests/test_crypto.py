"""
Tests for the vault crypto core.

Tests cover:
- PBKDF2 key derivation: determinism, salt generation, sizes
- AES-GCM encryption round trips of vault payloads
- Unified DecryptionError for every decryption failure
- Nonce freshness across many encryptions
"""
import pytest

from offpass.crypto import (
    KEY_LENGTH,
    NONCE_SIZE,
    b64decode,
    b64encode,
    decrypt,
    derive_key,
    derive_key_async,
    encrypt,
    serialize_value,
)
from offpass.config import PBKDF2_ITERATIONS, SALT_LENGTH
from offpass.exceptions import DecryptionError, IncorrectPasswordOrCorrupt
from offpass.models import Credential, VaultData

FAST = 1000


@pytest.fixture
def key():
    k, _ = derive_key("hunter2", b"\x00" * SALT_LENGTH, FAST)
    return k


@pytest.fixture
def vault_data():
    return VaultData(credentials=[
        Credential(title="Email", username="a@b.com", password="x"),
        Credential(
            title="Bank", username="me", password="p@ss",
            url="https://bank.example", tags=["money", "important"],
        ),
    ])


# --- Test Key Derivation ---

class TestKeyDerivation:
    """Tests for derive_key."""

    def test_default_iterations_constant(self):
        """The protocol round count is fixed at 100,000."""
        assert PBKDF2_ITERATIONS == 100_000

    def test_generates_salt_when_missing(self):
        key, salt = derive_key("secret", iterations=FAST)
        assert len(key) == KEY_LENGTH
        assert len(salt) == SALT_LENGTH

    def test_random_salts_differ(self):
        _, salt1 = derive_key("secret", iterations=FAST)
        _, salt2 = derive_key("secret", iterations=FAST)
        assert salt1 != salt2

    def test_deterministic_for_same_inputs(self):
        """Same password and salt reproduce the same key."""
        key1, salt = derive_key("secret")
        key2, salt2 = derive_key("secret", salt)
        assert key1 == key2
        assert salt2 == salt

    def test_different_password_different_key(self):
        salt = b"\x01" * SALT_LENGTH
        key1, _ = derive_key("secret", salt, FAST)
        key2, _ = derive_key("Secret", salt, FAST)
        assert key1 != key2

    def test_iterations_change_key(self):
        salt = b"\x01" * SALT_LENGTH
        key1, _ = derive_key("secret", salt, FAST)
        key2, _ = derive_key("secret", salt, FAST + 1)
        assert key1 != key2

    def test_known_vector(self):
        """PBKDF2-HMAC-SHA256 reference vector (password/salt, 1 round)."""
        key, _ = derive_key("password", b"salt", 1)
        assert key.hex() == (
            "120fb6cffcf8b32c43e7225256c4f837"
            "a86548c92ccc35480805987cb70be17b"
        )

    @pytest.mark.asyncio
    async def test_async_matches_sync(self):
        salt = b"\x02" * SALT_LENGTH
        sync_key, _ = derive_key("secret", salt, FAST)
        async_key, async_salt = await derive_key_async("secret", salt, FAST)
        assert async_key == sync_key
        assert async_salt == salt


# --- Test Encryption ---

class TestEncryption:
    """Tests for encrypt/decrypt."""

    def test_round_trip_vault_data(self, key, vault_data):
        ciphertext, iv = encrypt(key, vault_data)
        assert len(iv) == NONCE_SIZE
        restored = VaultData.model_validate(decrypt(key, ciphertext, iv))
        assert restored == vault_data

    def test_round_trip_plain_values(self, key):
        for value in ({"a": 1, "b": [1, 2]}, [1, "two"], "text", 42, None):
            ciphertext, iv = encrypt(key, value)
            assert decrypt(key, ciphertext, iv) == value

    def test_ciphertext_hides_plaintext(self, key, vault_data):
        ciphertext, _ = encrypt(key, vault_data)
        assert b"a@b.com" not in ciphertext

    def test_same_value_different_ciphertext(self, key, vault_data):
        ct1, iv1 = encrypt(key, vault_data)
        ct2, iv2 = encrypt(key, vault_data)
        assert iv1 != iv2
        assert ct1 != ct2

    def test_serialization_is_canonical(self, vault_data):
        """Key order does not depend on construction order."""
        assert serialize_value({"b": 1, "a": 2}) == serialize_value({"a": 2, "b": 1})
        assert serialize_value(vault_data) == serialize_value(
            VaultData.model_validate(vault_data.dump())
        )

    def test_no_iv_repeats(self, key):
        """10,000 encryptions under one key never reuse a nonce."""
        ivs = {encrypt(key, {"n": i})[1] for i in range(10_000)}
        assert len(ivs) == 10_000


# --- Test Decryption Failures ---

class TestDecryptionFailures:
    """Every decryption failure is the same DecryptionError."""

    def test_alias(self):
        assert DecryptionError is IncorrectPasswordOrCorrupt

    def test_wrong_key(self, key, vault_data):
        ciphertext, iv = encrypt(key, vault_data)
        wrong, _ = derive_key("wrong", b"\x00" * SALT_LENGTH, FAST)
        with pytest.raises(DecryptionError):
            decrypt(wrong, ciphertext, iv)

    def test_tampered_ciphertext(self, key, vault_data):
        ciphertext, iv = encrypt(key, vault_data)
        tampered = bytes([ciphertext[0] ^ 0x01]) + ciphertext[1:]
        with pytest.raises(DecryptionError):
            decrypt(key, tampered, iv)

    def test_truncated_ciphertext(self, key, vault_data):
        ciphertext, iv = encrypt(key, vault_data)
        with pytest.raises(DecryptionError):
            decrypt(key, ciphertext[:-1], iv)
        with pytest.raises(DecryptionError):
            decrypt(key, ciphertext[:4], iv)

    def test_wrong_iv(self, key, vault_data):
        ciphertext, iv = encrypt(key, vault_data)
        with pytest.raises(DecryptionError):
            decrypt(key, ciphertext, bytes(NONCE_SIZE))
        with pytest.raises(DecryptionError):
            decrypt(key, ciphertext, iv[:8])

    def test_bad_key_length(self, key, vault_data):
        ciphertext, iv = encrypt(key, vault_data)
        with pytest.raises(DecryptionError):
            decrypt(b"short", ciphertext, iv)

    def test_message_does_not_reveal_cause(self, key, vault_data):
        ciphertext, iv = encrypt(key, vault_data)
        wrong, _ = derive_key("wrong", b"\x00" * SALT_LENGTH, FAST)
        with pytest.raises(DecryptionError) as wrong_key:
            decrypt(wrong, ciphertext, iv)
        with pytest.raises(DecryptionError) as truncated:
            decrypt(key, ciphertext[:3], iv)
        assert str(wrong_key.value) == str(truncated.value)
        assert str(wrong_key.value) == "Incorrect master password or corrupted data"


# --- Test Storage Encoding ---

class TestBase64:
    """Tests for base64 storage helpers."""

    def test_round_trip(self):
        data = bytes(range(256))
        assert b64decode(b64encode(data)) == data

    def test_invalid_base64_is_decryption_error(self):
        with pytest.raises(DecryptionError):
            b64decode("not base64!!")
