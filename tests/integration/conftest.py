import os
from collections.abc import Generator
from pathlib import Path

import psycopg
import pytest

from permitqr.backends.supabase import document_store
from permitqr.backends.supabase.connection import build_conninfo
from permitqr.config.settings import Settings

SCHEMA_PATH = Path(document_store.__file__).with_name("schema.sql")


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "permitqr_test")
    return Settings(_env_file=None)  # type: ignore[call-arg]


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def postgres_schema(test_settings: Settings) -> Settings:
    """Apply schema.sql once, or skip when no database is reachable."""
    try:
        with psycopg.connect(build_conninfo(test_settings), connect_timeout=3) as conn:
            conn.execute(SCHEMA_PATH.read_text(encoding="utf-8"))
            conn.commit()
    except psycopg.OperationalError as e:
        pytest.skip(
            f"PostgreSQL test DB not available: {e}. Set DB_* env to run these tests"
        )
    return test_settings


@pytest.fixture
def integration_cleanup(postgres_schema: Settings) -> Generator[list[str], None, None]:
    """Collect document ids created by a test and delete them afterwards."""
    cleanup: list[str] = []
    yield cleanup
    if not cleanup:
        return
    with psycopg.connect(build_conninfo(postgres_schema)) as conn:
        conn.execute("DELETE FROM documents WHERE id = ANY(%s)", (cleanup,))
        conn.commit()
