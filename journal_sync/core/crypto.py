"""
PR Journal Sync - Credential Relay Cipher
==========================================

Symmetric encryption for short credential strings (journal email and
password). Blobs travel through clients and requests as
``base64(iv):base64(ciphertext)`` and are decrypted only at the point of use.
"""

import base64
import binascii
import os
import threading
from functools import lru_cache
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher as _BlockCipher
from cryptography.hazmat.primitives.ciphers import algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from journal_sync.core.config import settings
from journal_sync.core.errors import (
    CipherConfigurationError,
    DecryptionFailure,
    MalformedCiphertext,
)

KEY_LENGTH = 32
IV_LENGTH = 16
KDF_SALT = b"salt"
SEPARATOR = ":"


class Cipher:
    """
    AES-256-CBC encrypt/decrypt with a key derived once from a secret.

    The key is derived lazily with scrypt on first use and cached on the
    instance; derivation is guarded by a lock so concurrent first calls
    derive it exactly once. The raw key is never exposed.
    """

    def __init__(self, secret: Optional[str]):
        self._secret = secret
        self._key: Optional[bytes] = None
        self._lock = threading.Lock()

    def _get_key(self) -> bytes:
        if self._key is None:
            with self._lock:
                if self._key is None:
                    if not self._secret:
                        raise CipherConfigurationError()
                    kdf = Scrypt(salt=KDF_SALT, length=KEY_LENGTH, n=2**14, r=8, p=1)
                    self._key = kdf.derive(self._secret.encode("utf-8"))
        return self._key

    def ensure_ready(self) -> None:
        """Derive the key now so a missing secret surfaces at startup."""
        self._get_key()

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string with a fresh random IV."""
        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

        encryptor = _BlockCipher(algorithms.AES(self._get_key()), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()

        return (
            base64.b64encode(iv).decode("ascii")
            + SEPARATOR
            + base64.b64encode(ciphertext).decode("ascii")
        )

    def decrypt(self, blob: str) -> str:
        """
        Decrypt a blob produced by encrypt().

        Raises:
            MalformedCiphertext: If the blob has no IV separator
            DecryptionFailure: If the IV, ciphertext or padding is invalid
        """
        if not blob or SEPARATOR not in blob:
            raise MalformedCiphertext()

        iv_b64, data_b64 = blob.split(SEPARATOR, 1)
        key = self._get_key()

        try:
            iv = base64.b64decode(iv_b64, validate=True)
            ciphertext = base64.b64decode(data_b64, validate=True)
            if len(iv) != IV_LENGTH:
                raise ValueError("invalid IV length")

            decryptor = _BlockCipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()

            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()
            return plaintext.decode("utf-8")
        except (ValueError, binascii.Error) as e:
            # UnicodeDecodeError is a ValueError
            raise DecryptionFailure() from e


@lru_cache
def get_cipher() -> Cipher:
    """Get the process-wide cipher bound to ENCRYPTION_KEY."""
    return Cipher(settings.ENCRYPTION_KEY)
