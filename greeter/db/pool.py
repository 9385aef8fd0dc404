import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from sqlalchemy.engine import URL
from sqlalchemy.exc import ArgumentError, NoSuchModuleError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from ..config.config import DatasourceConfig
from ..errors import PoolProvisionError

logger = logging.getLogger(__name__)

DRIVER_NAME = "postgresql+psycopg"


@dataclass(frozen=True)
class ConnectOptions:
    host: str
    port: int
    database: str
    user: str
    password: str

    @classmethod
    def from_datasource(cls, datasource: DatasourceConfig) -> "ConnectOptions":
        return cls(
            host=datasource.host,
            port=datasource.port,
            database=datasource.database,
            user=datasource.user,
            password=datasource.password,
        )

    def to_url(self) -> URL:
        return URL.create(
            DRIVER_NAME,
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )


class PooledConnection:
    """One checked-out connection; statements run in autocommit mode."""

    def __init__(self, conn: AsyncConnection) -> None:
        self._conn = conn
        self.closed = False

    async def execute(self, sql: str) -> int:
        result = await self._conn.exec_driver_sql(sql)
        # psycopg reports -1 for DDL; treat "no rows" as 0
        return max(result.rowcount, 0)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self._conn.close()


class ConnectionPool:
    def __init__(self, engine: AsyncEngine, options: ConnectOptions, capacity: int) -> None:
        self._engine = engine
        self.connect_options = options
        self.capacity = capacity

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def get_connection(self) -> PooledConnection:
        conn = await self._engine.connect()
        try:
            conn = await conn.execution_options(isolation_level="AUTOCOMMIT")
        except Exception:
            await conn.close()
            raise
        return PooledConnection(conn)

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[PooledConnection]:
        conn = await self.get_connection()
        try:
            yield conn
        finally:
            await conn.close()

    async def close(self) -> None:
        await self._engine.dispose()


def provision_pool(datasource: DatasourceConfig, *, echo: bool = False) -> ConnectionPool:
    """Build a lazily-connecting pool bounded to ``datasource.max_size`` connections.

    No connection is opened here; connect failures surface on the first checkout.
    """
    options = ConnectOptions.from_datasource(datasource)
    try:
        engine = create_async_engine(
            options.to_url(),
            echo=echo,
            pool_size=datasource.max_size,
            max_overflow=0,
        )
    except (ArgumentError, NoSuchModuleError, ImportError) as e:
        raise PoolProvisionError(f"Cannot create pool for {options.host}:{options.port}/{options.database}: {e}") from e
    logger.info(
        "Pool created host=%s port=%s database=%s user=%s max_size=%s",
        options.host,
        options.port,
        options.database,
        options.user,
        datasource.max_size,
    )
    return ConnectionPool(engine, options, datasource.max_size)
