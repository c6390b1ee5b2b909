"""
@description 异步数据库连接管理
@responsibility 提供 SQLAlchemy 异步引擎、会话管理和数据库初始化
"""

from contextlib import asynccontextmanager
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

DATABASE_URL = "sqlite+aiosqlite:///./db/data.db"

Base = declarative_base()


def _create_engine(url: str):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_async_engine(url, echo=False, connect_args=connect_args)


engine = _create_engine(DATABASE_URL)

async_session_local = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def configure_database(url: str) -> None:
    """
    按配置重建引擎和会话工厂，需在 init_db 之前调用
    """
    global engine
    if url.startswith("sqlite"):
        # SQLite 文件所在目录需预先存在
        db_path = make_url(url).database
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    engine = _create_engine(url)
    async_session_local.configure(bind=engine)


async def init_db():
    """
    初始化数据库，创建所有表
    """
    # 导入所有模型，确保在 Base.metadata 中注册
    from app.models.torrent_record import TorrentRecord

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db():
    """释放连接池"""
    await engine.dispose()


@asynccontextmanager
async def get_session():
    """
    异步会话上下文管理器
    """
    async with async_session_local() as session:
        try:
            yield session
        finally:
            await session.close()
