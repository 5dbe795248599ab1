"""
Credential relay cipher tests.
"""

import base64
import threading

import pytest

from journal_sync.core.crypto import IV_LENGTH, Cipher
from journal_sync.core.errors import (
    BadRequest,
    CipherConfigurationError,
    DecryptionFailure,
    MalformedCiphertext,
)


class TestEncryptDecrypt:
    """Round trips and blob format."""

    def test_decrypt_recovers_plaintext(self, cipher: Cipher):
        for value in ["alice@example.com", "p@ss:word with spaces", "zażółć 🔐", ""]:
            assert cipher.decrypt(cipher.encrypt(value)) == value

    def test_same_plaintext_encrypts_differently(self, cipher: Cipher):
        assert cipher.encrypt("secret") != cipher.encrypt("secret")

    def test_blob_format(self, cipher: Cipher):
        blob = cipher.encrypt("secret")
        iv_b64, data_b64 = blob.split(":")

        assert len(base64.b64decode(iv_b64)) == IV_LENGTH
        assert len(base64.b64decode(data_b64)) % 16 == 0

    def test_instances_with_same_secret_interoperate(self, cipher: Cipher):
        other = Cipher("test-encryption-key")
        assert other.decrypt(cipher.encrypt("shared")) == "shared"


class TestDecryptErrors:
    """Malformed and corrupted blobs."""

    @pytest.mark.parametrize("blob", ["", "no-separator-here", "YWJj"])
    def test_missing_separator_is_malformed(self, cipher: Cipher, blob: str):
        with pytest.raises(MalformedCiphertext):
            cipher.decrypt(blob)

    def test_invalid_base64_fails(self, cipher: Cipher):
        with pytest.raises(DecryptionFailure):
            cipher.decrypt("not base64!:also not base64!")

    def test_wrong_iv_length_fails(self, cipher: Cipher):
        _, data = cipher.encrypt("secret").split(":")
        short_iv = base64.b64encode(b"short").decode()
        with pytest.raises(DecryptionFailure):
            cipher.decrypt(f"{short_iv}:{data}")

    def test_truncated_ciphertext_fails(self, cipher: Cipher):
        iv, data = cipher.encrypt("a somewhat longer secret value").split(":")
        truncated = base64.b64encode(base64.b64decode(data)[:-3]).decode()
        with pytest.raises(DecryptionFailure):
            cipher.decrypt(f"{iv}:{truncated}")

    def test_cipher_errors_are_bad_requests(self):
        assert issubclass(MalformedCiphertext, BadRequest)
        assert issubclass(DecryptionFailure, BadRequest)


class TestKeyDerivation:
    """Lazy, once-only key derivation."""

    def test_missing_secret_raises_configuration_error(self):
        with pytest.raises(CipherConfigurationError):
            Cipher(None).encrypt("secret")

    def test_ensure_ready_surfaces_missing_secret(self):
        with pytest.raises(CipherConfigurationError):
            Cipher("").ensure_ready()

    def test_key_derived_once_under_concurrency(self):
        cipher = Cipher("concurrent-secret")
        keys: list[bytes] = []

        def derive() -> None:
            keys.append(cipher._get_key())

        threads = [threading.Thread(target=derive) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(keys) == 8
        assert all(k is keys[0] for k in keys)
