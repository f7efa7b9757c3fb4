"""
데이터베이스 연결 및 세션 관리

결제/주문/원장 변경은 unit_of_work() 하나의 트랜잭션 안에서만 일어난다.
"""
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

from config import settings

os.makedirs("./data", exist_ok=True)
os.makedirs("./logs", exist_ok=True)

engine = create_async_engine(
    settings.DB_URL,
    echo=settings.DEBUG,
    future=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False
)

Base = declarative_base()


async def init_db():
    """데이터베이스 초기화"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """비동기 세션 의존성"""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_session_factory() -> async_sessionmaker:
    """유스케이스가 직접 트랜잭션 경계를 여는 경우 사용하는 팩토리 의존성"""
    return async_session_factory


@asynccontextmanager
async def unit_of_work(session_factory: async_sessionmaker = None):
    """원자적 작업 단위: 블록이 예외 없이 끝나면 커밋, 아니면 전부 롤백"""
    factory = session_factory or async_session_factory
    async with factory() as session:
        async with session.begin():
            yield session
