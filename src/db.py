import os
import sys
import asyncio
import contextlib
from typing import Optional, AsyncGenerator, Dict

from sqlalchemy import URL, make_url, text, event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

import traceback
import logging
LOGGER = logging.getLogger(__name__)

from models import Base

from dotenv import load_dotenv
load_dotenv()


class DatabaseManager:
    """Process-local singleton holding the async engine and session factory."""

    _instances: Dict[int, 'DatabaseManager'] = {}  # keyed by process ID

    def __new__(cls) -> 'DatabaseManager':
        pid = os.getpid()
        if pid not in cls._instances:
            instance = super().__new__(cls)
            instance._engine: Optional[AsyncEngine] = None
            instance._session_factory: Optional[async_sessionmaker] = None
            instance._initialized: bool = False
            cls._instances[pid] = instance
        return cls._instances[pid]

    def create_database_url(self) -> URL:
        if url := os.environ.get("DATABASE_URL"):
            return make_url(url)

        if test_db := os.environ.get("TEST_DATABASE_NAME"):
            database_name = test_db
        elif os.getenv("TEST_MODE"):
            database_name = "test_topstats"
        else:
            database_name = os.environ.get("POSTGRES_DB", "topstats")

        LOGGER.info(f"Using database '{database_name}' (PID: {os.getpid()}).")

        return URL.create(
            drivername='postgresql+asyncpg',
            username=os.environ["POSTGRES_USER"],
            password=os.environ["POSTGRES_PASSWORD"],
            host=os.environ["POSTGRES_HOST"],
            port=int(os.environ.get("DB_PORT", "5432")),
            database=database_name
        )

    def _engine_kwargs(self, url: URL) -> dict:
        if url.get_backend_name() != "postgresql":
            return {}

        return dict(
            poolclass=AsyncAdaptedQueuePool,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,              # Validate connections before use
            pool_recycle=3600,
            pool_timeout=30,
            connect_args={
                "server_settings": {"application_name": f"topstats_pid_{os.getpid()}"},
                "command_timeout": 60,
            }
        )

    async def initialize(self) -> None:
        if self._initialized:
            LOGGER.debug(f"Database already initialized for PID {os.getpid()}")
            return

        LOGGER.info(f"Initializing DB engine for PID {os.getpid()}")
        try:
            url = self.create_database_url()
            self._engine = create_async_engine(url, echo=False, **self._engine_kwargs(url))

            @event.listens_for(self._engine.sync_engine, "connect")
            def receive_connect(dbapi_connection, connection_record):
                LOGGER.debug(f"New database connection established (PID: {os.getpid()})")

            async with self._engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                LOGGER.info(f"Database connection test to '{url.database}' successful (PID: {os.getpid()})")

            self._session_factory = async_sessionmaker(
                bind=self._engine,
                class_=AsyncSession,
                expire_on_commit=False,          # Keep objects usable after commit
                autoflush=True,
            )

            self._initialized = True
            LOGGER.info(f"Database engine and session factory initialized (PID: {os.getpid()})")

        except Exception as e:
            LOGGER.error(f"Could not initialize database (PID: {os.getpid()}): {traceback.format_exc()}")
            await self.cleanup()
            raise RuntimeError(f"Database initialization failed: {str(e)}") from e

    @contextlib.asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits on a clean exit and rolls back otherwise."""
        if not self._initialized:
            LOGGER.info(f"DB not initialized yet for PID {os.getpid()}, doing that now.")
            await self.initialize()

        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            LOGGER.error(f"Session error, rolling back (PID: {os.getpid()}): {traceback.format_exc()}")
            raise
        finally:
            await session.close()

    async def get_engine(self) -> AsyncEngine:
        if not self._initialized:
            await self.initialize()
        return self._engine

    async def cleanup(self) -> None:
        if self._engine:
            await self._engine.dispose()
            LOGGER.info(f"Database engine disposed (PID: {os.getpid()})")

        self._engine = None
        self._session_factory = None
        self._initialized = False

        pid = os.getpid()
        if pid in self._instances:
            del self._instances[pid]

    async def create_tables_with_alembic(self) -> None:
        import subprocess

        await self.initialize()

        try:
            result = subprocess.run([
                sys.executable, "-m", "alembic", "upgrade", "head"
            ], check=True, capture_output=True, text=True)
            LOGGER.info(f"Alembic upgrade completed: {result.stdout}")
        except subprocess.CalledProcessError as e:
            LOGGER.error(f"Alembic upgrade failed: {e.stderr}")
            raise

    async def create_tables(self) -> None:
        """Direct metadata create, for throwaway databases (tests, sqlite)."""
        engine = await self.get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @classmethod
    async def cleanup_all_instances(cls) -> None:
        for pid, instance in list(cls._instances.items()):
            await instance.cleanup()
        cls._instances.clear()


_db_manager = None

def get_db_manager():
    global _db_manager
    if _db_manager is None or _db_manager._instances.get(os.getpid()) is not _db_manager:
        _db_manager = DatabaseManager()
    return _db_manager

def get_session():
    return get_db_manager().get_session()


if __name__ == "__main__":
    async def main():
        if "-t" in sys.argv or "--test" in sys.argv:
            os.environ["TEST_MODE"] = "true"

        LOGGER.info("Running migrations.")
        try:
            await get_db_manager().create_tables_with_alembic()
        finally:
            await get_db_manager().cleanup()

    asyncio.run(main())
