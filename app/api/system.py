"""
@description 系统状态接口
@responsibility 查询下载引擎连接状态
"""

from typing import TYPE_CHECKING, Optional

from fastapi import APIRouter
from loguru import logger

from app.core.exceptions import EngineError
from app.schemas.api import ApiResponse, StatusResponse, success_response

if TYPE_CHECKING:
    from app.services.engine_client import EngineClient

router = APIRouter()

_engine_client: Optional["EngineClient"] = None


def init_system_router(engine_client: "EngineClient"):
    global _engine_client
    _engine_client = engine_client


@router.get("/status", response_model=ApiResponse[StatusResponse])
async def get_status():
    connected = False
    version = None
    torrents = 0
    if _engine_client is not None:
        try:
            version = await _engine_client.version()
            torrents = len(await _engine_client.stats_for_all())
            connected = _engine_client.is_connected()
        except EngineError as e:
            logger.warning(f"查询引擎状态失败: {e}")

    return success_response(
        data=StatusResponse(
            engine_connected=connected,
            engine_version=version,
            engine_torrents=torrents,
        ),
        message="获取系统状态成功",
    )
