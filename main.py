"""
@description FastAPI 应用入口
@responsibility 加载配置、初始化数据库和下载引擎连接、装配服务并集成路由
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from loguru import logger

from app.api import system, tokens, torrents
from app.api.errors import register_exception_handlers
from app.api.system import init_system_router
from app.api.tokens import init_tokens_router
from app.api.torrents import init_torrents_router
from app.core.config import load_config
from app.core.database import configure_database, dispose_db, init_db
from app.core.exceptions import EngineError
from app.schemas.api import success_response
from app.services.engine_client import EngineClient
from app.services.lifecycle import TorrentLifecycleCoordinator
from app.services.reconciler import Reconciler
from app.services.record_store import RecordStore
from app.services.token_service import CapabilityTokenService

engine_client: Optional[EngineClient] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global engine_client

    logger.info("应用启动中...")

    config_obj = load_config()
    logger.info("配置加载完成")

    configure_database(config_obj.database.url)
    await init_db()
    logger.info("数据库初始化完成")

    engine_client = EngineClient(config_obj.engine)
    try:
        await engine_client.connect()
    except EngineError as e:
        # 引擎客户端在后续请求时会自动重新登录
        logger.error(f"下载引擎连接失败，请检查配置: {e}")

    record_store = RecordStore()
    token_service = CapabilityTokenService.from_config(config_obj.token)

    init_torrents_router(
        Reconciler(record_store, engine_client),
        TorrentLifecycleCoordinator(record_store, engine_client),
        token_service,
    )
    init_tokens_router(token_service)
    init_system_router(engine_client)

    yield

    await engine_client.close()
    await dispose_db()
    logger.info("应用已关闭")


app = FastAPI(
    title="种子下载管理服务",
    description="管理下载引擎中的种子并签发文件访问令牌",
    version="1.0.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

app.include_router(torrents.router, prefix="/api", tags=["torrents"])
app.include_router(tokens.router, prefix="/api", tags=["tokens"])
app.include_router(system.router, prefix="/api", tags=["system"])


@app.get("/")
async def root():
    return success_response(
        data={"message": "种子下载管理服务 API", "version": "1.0.0"},
        message="服务运行中",
    )


@app.get("/health")
async def health_check():
    return success_response(data={"status": "healthy"}, message="健康检查通过")
