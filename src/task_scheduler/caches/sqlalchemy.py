from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy import JSON, Column, Float, String, delete
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.future import select
from sqlalchemy.orm import declarative_base, sessionmaker

from task_scheduler.clock import Clock, SystemClock
from task_scheduler.exceptions import CacheUnavailableError
from .protocol import CacheStore

Base = declarative_base()


class CacheEntryModel(Base):
    __tablename__ = 'scheduler_cache'

    key = Column(String(255), primary_key=True)
    value = Column(JSON, nullable=False)
    expires_at = Column(Float, nullable=True)


class SqlAlchemyCacheStore(CacheStore):
    """
    Cache store kept in a database table.

    ``add`` relies on the primary key: the insert of a second holder fails with
    an integrity error, which makes it a real check-and-set on any backend.
    Expired rows are purged lazily by ``add`` and ignored by ``get``.
    """
    atomic_add = True

    def __init__(self, db_url: str, clock: Optional[Clock] = None):
        self.engine = create_async_engine(db_url)
        self.async_session = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )
        self.clock: Clock = clock or SystemClock()
        self._tables_ready = False

    async def create_tables(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self._tables_ready = True

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            if not self._tables_ready:
                await self.create_tables()
            async with self.async_session() as session:
                yield session
        except (OperationalError, InterfaceError, OSError) as e:
            raise CacheUnavailableError(f"Cache database unavailable: {e}") from e

    def _now(self) -> float:
        return self.clock.now().timestamp()

    def _expiry(self, ttl: Optional[int]) -> Optional[float]:
        return self._now() + ttl if ttl is not None else None

    async def get(self, key: str, default: Any = None) -> Any:
        async with self._session() as session:
            result = await session.execute(select(CacheEntryModel).filter_by(key=key))
            entry = result.scalar_one_or_none()
            if entry is None:
                return default
            if entry.expires_at is not None and entry.expires_at <= self._now():
                return default
            return entry.value

    async def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        async with self._session() as session:
            await session.merge(CacheEntryModel(key=key, value=value, expires_at=self._expiry(ttl)))
            await session.commit()

    async def add(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        async with self._session() as session:
            await session.execute(
                delete(CacheEntryModel).where(
                    CacheEntryModel.key == key,
                    CacheEntryModel.expires_at.is_not(None),
                    CacheEntryModel.expires_at <= self._now(),
                )
            )
            session.add(CacheEntryModel(key=key, value=value, expires_at=self._expiry(ttl)))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                return False
            return True

    async def forget(self, key: str) -> bool:
        async with self._session() as session:
            result = await session.execute(delete(CacheEntryModel).where(CacheEntryModel.key == key))
            await session.commit()
            return result.rowcount > 0

    async def close(self) -> None:
        await self.engine.dispose()


class InMemorySqlCacheStore(SqlAlchemyCacheStore):
    def __init__(self, clock: Optional[Clock] = None):
        super().__init__("sqlite+aiosqlite:///:memory:", clock)
