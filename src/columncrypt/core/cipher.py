# src/columncrypt/core/cipher.py
"""Single-value symmetric encryption for table columns.

AES in CBC mode with PKCS7 padding, using one key and one IV for the whole
process. Identical plaintexts always produce identical ciphertexts: the
stored values stay comparable for equality, and a re-run can recognise a
value it already encrypted.

Ciphertext is standard base64 so it can be written to a text column as-is.
"""

from __future__ import annotations

import base64
import binascii
from typing import TYPE_CHECKING

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher as _AESCipher
from cryptography.hazmat.primitives.ciphers import algorithms, modes

from columncrypt.contracts.errors import CryptoError

if TYPE_CHECKING:
    from columncrypt.core.config import EncryptionSettings

_VALID_KEY_LENGTHS = frozenset({16, 24, 32})
_BLOCK_BITS = 128
_BLOCK_BYTES = _BLOCK_BITS // 8


class Cipher:
    """Encrypts and decrypts single string values.

    Stateless apart from the key material; a fresh encryptor/decryptor
    context is created per call so one instance is safe to share.
    """

    def __init__(self, key: bytes, iv: bytes) -> None:
        """Validate key material.

        Args:
            key: AES key, 16, 24 or 32 bytes (AES-128/192/256)
            iv: Initialization vector, exactly 16 bytes

        Raises:
            CryptoError: If key or IV length is invalid
        """
        if len(key) not in _VALID_KEY_LENGTHS:
            raise CryptoError(f"Invalid AES key length: {len(key)} bytes (expected 16, 24 or 32)")
        if len(iv) != _BLOCK_BYTES:
            raise CryptoError(f"Invalid IV length: {len(iv)} bytes (expected {_BLOCK_BYTES})")
        self._key = key
        self._iv = iv

    @classmethod
    def from_settings(cls, settings: EncryptionSettings) -> Cipher:
        """Build a cipher from the UTF-8 bytes of the configured key and IV strings."""
        return cls(settings.key.encode("utf-8"), settings.iv.encode("utf-8"))

    def _new(self) -> _AESCipher[modes.CBC]:
        try:
            return _AESCipher(algorithms.AES(self._key), modes.CBC(self._iv))
        except ValueError as e:
            raise CryptoError(f"Cipher initialization failed: {e}") from e

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string and return base64 ciphertext."""
        padder = padding.PKCS7(_BLOCK_BITS).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = self._new().encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return base64.b64encode(ciphertext).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt base64 ciphertext produced by encrypt().

        Raises:
            CryptoError: If the value is not valid base64, not block-aligned,
                has bad padding, or does not decode as UTF-8
        """
        try:
            raw = base64.b64decode(ciphertext.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as e:
            raise CryptoError(f"Malformed ciphertext: not valid base64 ({e})") from e

        if not raw or len(raw) % _BLOCK_BYTES != 0:
            raise CryptoError(f"Malformed ciphertext: length {len(raw)} is not a positive multiple of {_BLOCK_BYTES}")

        decryptor = self._new().decryptor()
        padded = decryptor.update(raw) + decryptor.finalize()

        unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
        try:
            data = unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise CryptoError("Malformed ciphertext: invalid padding") from e

        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CryptoError("Malformed ciphertext: plaintext is not valid UTF-8") from e

    def is_encrypted(self, value: str) -> bool:
        """Return True if value is ciphertext produced under this key and IV.

        Used to skip values a previous (possibly interrupted) run already
        encrypted. A plaintext that happens to be valid base64 of whole
        blocks AND decrypts to valid padding AND valid UTF-8 would be
        misclassified; the odds of that for real column data are negligible.
        """
        try:
            self.decrypt(value)
        except CryptoError:
            return False
        return True
