"""
Target Database Service.

Caches one async engine per user database connection and makes sure
the indexing tables exist before the first write.
"""

import asyncio
from collections.abc import Callable

from loguru import logger
from sqlalchemy import URL
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from app.models.database_connection import DatabaseConnection
from app.services.event_processors import target_metadata
from app.utils.encryption import EncryptionService


EngineFactory = Callable[[DatabaseConnection, str], AsyncEngine]


def build_connection_url(connection: DatabaseConnection, password: str) -> URL:
    """
    Build the asyncpg URL of a target database.

    Args:
        connection: Connection record
        password: Decrypted password

    Returns:
        SQLAlchemy URL
    """
    return URL.create(
        "postgresql+asyncpg",
        username=connection.username,
        password=password,
        host=connection.host,
        port=connection.port,
        database=connection.database,
    )


def default_engine_factory(
    connection: DatabaseConnection, password: str
) -> AsyncEngine:
    """Pooled engine for a user database."""
    return create_async_engine(
        build_connection_url(connection, password),
        pool_size=5,
        max_overflow=5,
        pool_pre_ping=True,
        pool_recycle=1800,
        connect_args={"timeout": 10},
    )


class TargetDatabaseService:
    """Pool of engines for user-supplied databases."""

    def __init__(
        self,
        encryption: EncryptionService,
        engine_factory: EngineFactory = default_engine_factory,
    ) -> None:
        """
        Initialize service.

        Args:
            encryption: Decrypts stored connection passwords
            engine_factory: Builds an engine from a connection and password
        """
        self.encryption = encryption
        self._engine_factory = engine_factory
        self._engines: dict[int, AsyncEngine] = {}
        self._schema_ready: set[int] = set()
        self._locks: dict[int, asyncio.Lock] = {}

    async def get_engine(self, connection: DatabaseConnection) -> AsyncEngine:
        """
        Get (or create) the engine of a connection.

        Args:
            connection: Connection record

        Returns:
            Engine with the indexing tables in place
        """
        lock = self._locks.setdefault(connection.id, asyncio.Lock())
        async with lock:
            engine = self._engines.get(connection.id)
            if engine is None:
                password = self.encryption.decrypt(connection.password)
                engine = self._engine_factory(connection, password)
                self._engines[connection.id] = engine
                logger.info(
                    f"Target database engine created for connection {connection.id} "
                    f"({connection.host}/{connection.database})"
                )

            if connection.id not in self._schema_ready:
                async with engine.begin() as conn:
                    await conn.run_sync(target_metadata.create_all)
                self._schema_ready.add(connection.id)

        return engine

    async def dispose(self, connection_id: int | None = None) -> None:
        """
        Dispose cached engines.

        Args:
            connection_id: Engine to drop, or all when None
        """
        ids = [connection_id] if connection_id is not None else list(self._engines)
        for engine_id in ids:
            engine = self._engines.pop(engine_id, None)
            self._schema_ready.discard(engine_id)
            if engine is not None:
                await engine.dispose()
