# tests/engine/test_encryptor.py
"""Tests for the batch encryptor."""

from columncrypt.contracts import Batch
from columncrypt.core.cipher import Cipher
from columncrypt.core.tables import TableEncryptionConfig
from columncrypt.engine.encryptor import BatchEncryptor


def _batch(*rows: dict[str, object]) -> Batch:
    return Batch(primary_key="user_id", rows=tuple(rows))


class TestBatchEncryptor:
    def test_encrypts_every_configured_column(self, cipher: Cipher, users_config: TableEncryptionConfig) -> None:
        changes = BatchEncryptor(cipher).apply(users_config, _batch({"user_id": 1, "email": "a@x", "phone": "111"}))

        assert len(changes) == 1
        change = changes.changes[0]
        assert change.primary_key_value == 1
        assert change.columns == ("email", "phone")
        assert cipher.decrypt(change.values["email"]) == "a@x"
        assert cipher.decrypt(change.values["phone"]) == "111"

    def test_skips_null_and_empty_values(self, cipher: Cipher, users_config: TableEncryptionConfig) -> None:
        changes = BatchEncryptor(cipher).apply(
            users_config,
            _batch(
                {"user_id": 1, "email": None, "phone": "111"},
                {"user_id": 2, "email": "", "phone": None},
            ),
        )

        # Row 2 has nothing to encrypt and produces no change
        assert [c.primary_key_value for c in changes] == [1]
        assert changes.changes[0].columns == ("phone",)
        assert changes.values_changed == 1

    def test_skips_values_already_encrypted(self, cipher: Cipher, users_config: TableEncryptionConfig) -> None:
        already = cipher.encrypt("a@x")

        changes = BatchEncryptor(cipher).apply(
            users_config,
            _batch({"user_id": 1, "email": already, "phone": "111"}),
        )

        assert changes.changes[0].columns == ("phone",)
        assert changes.already_encrypted == 1

    def test_fully_encrypted_batch_stages_nothing_but_keeps_scanning(
        self, cipher: Cipher, users_config: TableEncryptionConfig
    ) -> None:
        batch = _batch({"user_id": 1, "email": cipher.encrypt("a@x"), "phone": cipher.encrypt("111")})

        changes = BatchEncryptor(cipher).apply(users_config, batch)

        assert changes.is_empty
        assert changes.already_encrypted == 2
        assert not changes.ends_scan

    def test_batch_with_nothing_eligible_ends_scan(self, cipher: Cipher, users_config: TableEncryptionConfig) -> None:
        batch = _batch({"user_id": 1, "email": None, "phone": ""}, {"user_id": None, "email": "a@x", "phone": None})

        changes = BatchEncryptor(cipher).apply(users_config, batch)

        assert changes.is_empty
        assert changes.already_encrypted == 0
        assert changes.ends_scan

    def test_skips_rows_with_null_primary_key(self, cipher: Cipher, users_config: TableEncryptionConfig) -> None:
        changes = BatchEncryptor(cipher).apply(
            users_config,
            _batch({"user_id": None, "email": "a@x", "phone": "111"}, {"user_id": 2, "email": "b@x", "phone": None}),
        )

        assert [c.primary_key_value for c in changes] == [2]

    def test_non_string_values_encrypted_as_text(self, cipher: Cipher, users_config: TableEncryptionConfig) -> None:
        changes = BatchEncryptor(cipher).apply(users_config, _batch({"user_id": 1, "email": None, "phone": 5550100}))

        assert cipher.decrypt(changes.changes[0].values["phone"]) == "5550100"

    def test_preserves_batch_order(self, cipher: Cipher, users_config: TableEncryptionConfig) -> None:
        rows = [{"user_id": k, "email": f"u{k}@x", "phone": None} for k in (1, 2, 3)]

        changes = BatchEncryptor(cipher).apply(users_config, _batch(*rows))

        assert [c.primary_key_value for c in changes] == [1, 2, 3]

    def test_pure_and_repeatable(self, cipher: Cipher, users_config: TableEncryptionConfig) -> None:
        batch = _batch({"user_id": 1, "email": "a@x", "phone": "111"})
        encryptor = BatchEncryptor(cipher)

        assert encryptor.apply(users_config, batch) == encryptor.apply(users_config, batch)
        # Input rows are untouched
        assert batch.rows[0]["email"] == "a@x"

    def test_empty_batch(self, cipher: Cipher, users_config: TableEncryptionConfig) -> None:
        assert BatchEncryptor(cipher).apply(users_config, _batch()).is_empty
