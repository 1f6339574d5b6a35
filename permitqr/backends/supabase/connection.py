import psycopg
from psycopg_pool import AsyncConnectionPool

from permitqr.config.settings import Settings


def build_conninfo(settings: Settings) -> str:
    return (
        f"host={settings.db_host} "
        f"port={settings.db_port} "
        f"dbname={settings.db_database} "
        f"user={settings.db_username} "
        f"password={settings.db_password}"
    )


def create_pool(settings: Settings) -> AsyncConnectionPool:
    """Build an unopened pool. The document store opens and closes it."""
    return AsyncConnectionPool(
        build_conninfo(settings),
        min_size=1,
        max_size=settings.db_pool_max_size,
        open=False,
    )


async def connect_listener(conninfo: str) -> psycopg.AsyncConnection:
    """Dedicated autocommit connection for LISTEN, outside the pool."""
    return await psycopg.AsyncConnection.connect(conninfo, autocommit=True)
