# tests/cli/test_cli.py
"""Tests for the columncrypt CLI."""

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

from columncrypt.cli import app
from columncrypt.core.cipher import Cipher

# Stderr output is combined with stdout by default when using CliRunner.invoke()
runner = CliRunner()

KEY = "0123456789abcdef0123456789abcdef"
IV = "fedcba9876543210"


@pytest.fixture
def settings_file(tmp_path: Path, db_url: str) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(
        f"""
encryption:
  key: "{KEY}"
  iv: "{IV}"
database:
  url: "{db_url}"
tables:
  path: tables.json
checkpoint:
  path: state/checkpoints.json
batch_size: 2
"""
    )
    return path


@pytest.fixture
def users_table(create_table: Callable[..., None], tmp_path: Path) -> None:
    create_table(
        "users",
        "user_id INTEGER PRIMARY KEY, email TEXT",
        [{"user_id": 1, "email": "a@x"}, {"user_id": 2, "email": "b@x"}, {"user_id": 3, "email": "c@x"}],
    )
    (tmp_path / "tables.json").write_text(
        json.dumps({"users": {"tableName": "users", "primaryKey": "user_id", "columnsToEncrypt": ["email"]}})
    )


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "columncrypt" in result.stdout.lower()

    def test_help_flag(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "encrypt", "decrypt", "checkpoints", "validate"):
            assert command in result.stdout

    def test_missing_env_file_exits_1(self, tmp_path: Path, settings_file: Path) -> None:
        result = runner.invoke(app, ["--env-file", str(tmp_path / "nope.env"), "validate", "-s", str(settings_file)])

        assert result.exit_code == 1
        assert ".env file not found" in result.output

    def test_env_file_supplies_key(self, tmp_path: Path, db_url: str, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CLI_TEST_KEY", raising=False)
        env_file = tmp_path / "test.env"
        env_file.write_text(f"CLI_TEST_KEY={KEY}\n")
        settings = tmp_path / "settings.yaml"
        settings.write_text(
            f'encryption:\n  key: "${{CLI_TEST_KEY}}"\n  iv: "{IV}"\ndatabase:\n  url: "{db_url}"\n'
        )

        result = runner.invoke(app, ["--env-file", str(env_file), "encrypt", "v", "-s", str(settings)])

        assert result.exit_code == 0, result.output
        assert Cipher(KEY.encode(), IV.encode()).encrypt("v") in result.stdout


class TestEncryptDecrypt:
    def test_encrypt_matches_cipher(self, settings_file: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "encrypt", "secret", "-s", str(settings_file)])

        assert result.exit_code == 0
        expected = Cipher(KEY.encode(), IV.encode()).encrypt("secret")
        assert expected in result.stdout

    def test_decrypt_round_trip(self, settings_file: Path) -> None:
        ciphertext = Cipher(KEY.encode(), IV.encode()).encrypt("4111 1111")

        result = runner.invoke(app, ["--no-dotenv", "decrypt", ciphertext, "-s", str(settings_file)])

        assert result.exit_code == 0
        assert "4111 1111" in result.stdout

    def test_decrypt_malformed_exits_1(self, settings_file: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "decrypt", "not-ciphertext", "-s", str(settings_file)])

        assert result.exit_code == 1
        assert "Malformed ciphertext" in result.output

    def test_missing_settings_exits_1(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "encrypt", "x", "-s", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1
        assert "not found" in result.output


@pytest.mark.usefixtures("users_table")
class TestRunCommand:
    def test_run_encrypts_and_clears_checkpoints(
        self,
        settings_file: Path,
        tmp_path: Path,
        read_table: Callable[[str, str], list[dict[str, Any]]],
    ) -> None:
        result = runner.invoke(app, ["--no-dotenv", "run", "-s", str(settings_file)])

        assert result.exit_code == 0, result.output
        assert "users: completed" in result.stdout
        cipher = Cipher(KEY.encode(), IV.encode())
        assert [cipher.decrypt(r["email"]) for r in read_table("users", "user_id")] == ["a@x", "b@x", "c@x"]
        assert json.loads((tmp_path / "state" / "checkpoints.json").read_text()) == {}

    def test_run_json_output(self, settings_file: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "run", "-s", str(settings_file), "--format", "json"])

        assert result.exit_code == 0, result.output
        summary = json.loads(result.stdout.strip().splitlines()[-1])
        assert summary["skipped"] is False
        assert summary["tables"][0]["table"] == "users"
        assert summary["tables"][0]["status"] == "completed"
        assert summary["tables"][0]["rows_updated"] == 3

    def test_aborted_table_exits_2(self, settings_file: Path, tmp_path: Path) -> None:
        (tmp_path / "tables.json").write_text(
            json.dumps(
                {
                    "ghost": {"tableName": "ghost", "primaryKey": "id", "columnsToEncrypt": ["x"]},
                    "users": {"tableName": "users", "primaryKey": "user_id", "columnsToEncrypt": ["email"]},
                }
            )
        )

        result = runner.invoke(app, ["--no-dotenv", "run", "-s", str(settings_file)])

        assert result.exit_code == 2
        assert "ghost: aborted" in result.stdout
        assert "users: completed" in result.stdout

    def test_invalid_table_config_exits_1(self, settings_file: Path, tmp_path: Path) -> None:
        (tmp_path / "tables.json").write_text('{"users": {"tableName": "users"}}')

        result = runner.invoke(app, ["--no-dotenv", "run", "-s", str(settings_file)])

        assert result.exit_code == 1
        assert "cannot start pipeline" in result.output


class TestCheckpointsCommand:
    def test_no_checkpoint_file(self, settings_file: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "checkpoints", "-s", str(settings_file)])

        assert result.exit_code == 0
        assert "No pending checkpoints" in result.stdout

    def test_lists_pending(self, settings_file: Path, tmp_path: Path) -> None:
        state = tmp_path / "state"
        state.mkdir()
        (state / "checkpoints.json").write_text(
            json.dumps({"users": 1000, "legacy": {"__columncrypt_type__": "null_marker", "__columncrypt_value__": None}})
        )

        result = runner.invoke(app, ["--no-dotenv", "checkpoints", "-s", str(settings_file)])

        assert result.exit_code == 0
        assert "users: resumes after 1000" in result.stdout
        assert "legacy: resumes after <null_marker>" in result.stdout

    def test_corrupt_file_exits_1(self, settings_file: Path, tmp_path: Path) -> None:
        state = tmp_path / "state"
        state.mkdir()
        (state / "checkpoints.json").write_text("{oops")

        result = runner.invoke(app, ["--no-dotenv", "checkpoints", "-s", str(settings_file)])

        assert result.exit_code == 1

    def test_listing_never_writes_the_file(self, settings_file: Path, tmp_path: Path) -> None:
        state = tmp_path / "state"
        state.mkdir()
        checkpoint_file = state / "checkpoints.json"
        checkpoint_file.write_text("")
        before = checkpoint_file.stat().st_mtime_ns

        result = runner.invoke(app, ["--no-dotenv", "checkpoints", "-s", str(settings_file)])

        assert result.exit_code == 0, result.output
        assert "No pending checkpoints" in result.stdout
        assert checkpoint_file.read_text() == ""
        assert checkpoint_file.stat().st_mtime_ns == before
        assert sorted(p.name for p in state.iterdir()) == ["checkpoints.json"]


class TestValidateCommand:
    def test_valid_with_default_tables(self, settings_file: Path, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(settings_file)])

        assert result.exit_code == 0, result.output
        assert "Configuration valid" in result.stdout
        assert "users: key user_id, columns email, phone, ssn" in result.stdout
        # validate never writes files
        assert not (tmp_path / "tables.json").exists()

    def test_invalid_settings(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text('encryption:\n  key: "short"\n  iv: "fedcba9876543210"\ndatabase:\n  url: "sqlite://"\n')

        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(path)])

        assert result.exit_code == 1
        assert "encryption.key" in result.output

    def test_invalid_table_file(self, settings_file: Path, tmp_path: Path) -> None:
        (tmp_path / "tables.json").write_text('{"users": {"tableName": "users", "primaryKey": "id", "columnsToEncrypt": ["id"]}}')

        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(settings_file)])

        assert result.exit_code == 1
        assert "Table configuration error" in result.output
