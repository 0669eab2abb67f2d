# src/columncrypt/engine/encryptor.py
"""Batch encryptor: turns a fetched batch into the updates it needs."""

from __future__ import annotations

from typing import TYPE_CHECKING

from columncrypt.contracts import Batch, ChangeSet, RowChange

if TYPE_CHECKING:
    from columncrypt.core.cipher import Cipher
    from columncrypt.core.tables import TableEncryptionConfig


class BatchEncryptor:
    """Encrypts the configured columns of every row in a batch.

    Pure transform: no I/O and no state beyond the cipher, so a batch can
    be re-encrypted after a failed update and produce the same ChangeSet.

    A value is left alone when it is NULL, renders as an empty string, or
    is already ciphertext under the current key. Rows with a NULL primary
    key are skipped since an UPDATE cannot address them.
    """

    def __init__(self, cipher: Cipher) -> None:
        self._cipher = cipher

    def apply(self, config: TableEncryptionConfig, batch: Batch) -> ChangeSet:
        """Stage encrypted values for every row that needs them.

        Raises:
            CryptoError: If encryption fails
        """
        changes: list[RowChange] = []
        already_encrypted = 0
        for row in batch:
            pk_value = row[config.primary_key]
            if pk_value is None:
                continue

            values: dict[str, str] = {}
            for column in config.columns_to_encrypt:
                value = row.get(column)
                if value is None:
                    continue
                text = str(value)
                if not text:
                    continue
                if self._cipher.is_encrypted(text):
                    already_encrypted += 1
                    continue
                values[column] = self._cipher.encrypt(text)

            if values:
                changes.append(RowChange(primary_key_value=pk_value, values=values))

        return ChangeSet(changes=tuple(changes), already_encrypted=already_encrypted)
