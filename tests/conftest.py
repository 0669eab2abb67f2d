# tests/conftest.py
"""Shared test fixtures.

Database tests run against a real SQLite file in tmp_path through the same
RowStore the CLI uses; nothing in the row store is mocked.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings
from sqlalchemy import text

from columncrypt.core.checkpoint import CheckpointStore
from columncrypt.core.cipher import Cipher
from columncrypt.core.database import RowStore
from columncrypt.core.tables import TableEncryptionConfig

TEST_KEY = b"0123456789abcdef0123456789abcdef"  # 32 bytes: AES-256
TEST_IV = b"fedcba9876543210"

# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def cipher() -> Cipher:
    return Cipher(TEST_KEY, TEST_IV)


@pytest.fixture
def users_config() -> TableEncryptionConfig:
    return TableEncryptionConfig(table_name="users", primary_key="user_id", columns_to_encrypt=("email", "phone"))


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path}/rows.db"


@pytest.fixture
def row_store(db_url: str) -> Iterator[RowStore]:
    store = RowStore.from_url(db_url)
    yield store
    store.dispose()


@pytest.fixture
def checkpoint_store(tmp_path: Path) -> CheckpointStore:
    store = CheckpointStore(tmp_path / "state" / "checkpoints.json")
    store.load_all()
    return store


@pytest.fixture
def create_table(row_store: RowStore) -> Callable[..., None]:
    """Factory: create a table and insert rows.

    Usage:
        create_table("users", "user_id INTEGER PRIMARY KEY, email TEXT", [{"user_id": 1, "email": "a@x"}])
    """

    def _create(name: str, ddl: str, rows: Sequence[dict[str, Any]] = ()) -> None:
        with row_store.engine.begin() as conn:
            conn.execute(text(f"CREATE TABLE {name} ({ddl})"))
            if rows:
                columns = list(rows[0])
                placeholders = ", ".join(f":{c}" for c in columns)
                conn.execute(
                    text(f"INSERT INTO {name} ({', '.join(columns)}) VALUES ({placeholders})"),
                    [dict(r) for r in rows],
                )

    return _create


@pytest.fixture
def read_table(row_store: RowStore) -> Callable[[str, str], list[dict[str, Any]]]:
    """Factory: read all rows of a table ordered by the given column."""

    def _read(name: str, order_by: str) -> list[dict[str, Any]]:
        with row_store.engine.connect() as conn:
            return [dict(r) for r in conn.execute(text(f"SELECT * FROM {name} ORDER BY {order_by}")).mappings()]

    return _read
