"""
Database connection management for Scrape Hub.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
import logging

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker
)

from config.settings import settings
from crawlers.core.exceptions import PersistenceError
from models.base import Base

logger = logging.getLogger(__name__)


class DatabaseManager:
    """데이터베이스 연결 관리자"""

    def __init__(self, url: Optional[str] = None):
        self._url = url
        self._async_engine: Optional[AsyncEngine] = None
        self._async_session_factory: Optional[async_sessionmaker] = None
        self._initialized = False

    @property
    def url(self) -> str:
        return self._url or settings.database.url

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    def initialize(self) -> None:
        """데이터베이스 연결 초기화"""
        if self._initialized:
            return

        try:
            engine_kwargs = {"echo": settings.database.echo}

            # 서버형 DB에만 풀 설정 적용
            if not self.is_sqlite:
                engine_kwargs.update(
                    pool_size=settings.database.pool_size,
                    max_overflow=settings.database.max_overflow,
                    pool_timeout=settings.database.pool_timeout,
                    pool_recycle=settings.database.pool_recycle,
                    pool_pre_ping=True
                )

            self._async_engine = create_async_engine(self.url, **engine_kwargs)

            self._async_session_factory = async_sessionmaker(
                bind=self._async_engine,
                class_=AsyncSession,
                autoflush=False,
                expire_on_commit=False
            )

            self._register_event_listeners()

            self._initialized = True
            logger.info("Database connection initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize database connection: {e}")
            raise

    def _register_event_listeners(self) -> None:
        """SQLAlchemy 이벤트 리스너 등록"""
        sync_engine = self._async_engine.sync_engine

        @event.listens_for(sync_engine, "checkout")
        def receive_checkout(dbapi_connection, connection_record, connection_proxy):
            """연결 풀에서 연결을 가져올 때"""
            logger.debug("Connection checked out from pool")

        @event.listens_for(sync_engine, "checkin")
        def receive_checkin(dbapi_connection, connection_record):
            """연결 풀에 연결을 반환할 때"""
            logger.debug("Connection returned to pool")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """비동기 데이터베이스 세션 컨텍스트 매니저

        SQLAlchemy 에러는 PersistenceError로 변환되고, 도메인 에러는 그대로 전파된다.
        """
        if not self._initialized:
            self.initialize()

        session = self._async_session_factory()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise PersistenceError(f"Database operation failed: {e}") from e
        except BaseException:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_tables(self) -> None:
        """모델 기반 테이블 생성"""
        if not self._initialized:
            self.initialize()

        async with self._async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    def get_async_engine(self) -> AsyncEngine:
        """비동기 엔진 반환"""
        if not self._initialized:
            self.initialize()
        return self._async_engine

    async def check_connection(self) -> bool:
        """데이터베이스 연결 상태 확인"""
        try:
            async with self.get_session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except PersistenceError as e:
            logger.error(f"Database connection check failed: {e}")
            return False

    async def close(self) -> None:
        """데이터베이스 연결 종료"""
        if self._async_engine:
            await self._async_engine.dispose()
            logger.info("Async database engine disposed")

        self._async_engine = None
        self._async_session_factory = None
        self._initialized = False


# 전역 데이터베이스 매니저 인스턴스
db_manager = DatabaseManager()


# 편의 함수들
async def get_async_db_session() -> AsyncGenerator[AsyncSession, None]:
    """데이터베이스 세션 획득 (비동기)"""
    async with db_manager.get_session() as session:
        yield session


async def init_db() -> None:
    """데이터베이스 연결 초기화 및 테이블 생성"""
    db_manager.initialize()
    await db_manager.create_tables()


async def close_db() -> None:
    """데이터베이스 연결 종료"""
    await db_manager.close()
