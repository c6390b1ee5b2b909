"""
@description 种子管理接口
@responsibility 处理种子的列表、添加、查询、删除以及文件访问令牌签发
"""

import asyncio
import os
import tempfile
from typing import TYPE_CHECKING, Optional

from fastapi import APIRouter, File, Header, HTTPException, Query, UploadFile
from loguru import logger

from app.schemas.api import (
    AddLinkRequest,
    AddTorrentResponse,
    DeleteTorrentResponse,
    TokenResponse,
    TorrentListResponse,
    success_response,
)
from app.schemas.torrent import AddOutcome, AddResult, RemoveOutcome

if TYPE_CHECKING:
    from app.services.lifecycle import TorrentLifecycleCoordinator
    from app.services.reconciler import Reconciler
    from app.services.token_service import CapabilityTokenService

MAX_TORRENT_FILE_BYTES = 2 * 1024 * 1024

router = APIRouter()

_reconciler: "Reconciler" = None
_coordinator: "TorrentLifecycleCoordinator" = None
_token_service: "CapabilityTokenService" = None


def init_torrents_router(
    reconciler: "Reconciler",
    coordinator: "TorrentLifecycleCoordinator",
    token_service: "CapabilityTokenService",
):
    global _reconciler, _coordinator, _token_service
    _reconciler = reconciler
    _coordinator = coordinator
    _token_service = token_service


def _require_owner(owner_id: Optional[str]) -> str:
    # 身份由前置网关认证后通过请求头传入
    if not owner_id:
        raise HTTPException(status_code=401, detail="缺少请求者身份")
    return owner_id


def _add_response(result: AddResult):
    if result.outcome == AddOutcome.CONFLICT:
        raise HTTPException(status_code=409, detail="种子已存在")
    if result.outcome == AddOutcome.PARTIAL_ORPHAN:
        raise HTTPException(
            status_code=502,
            detail=f"引擎已接收种子但记录保存失败，请重试: {result.hash_string}",
        )

    return success_response(
        data=AddTorrentResponse(outcome=result.outcome, record=result.record),
        message="种子添加成功",
    )


@router.get("/torrents")
async def list_torrents():
    torrents = await _reconciler.list_merged()
    return success_response(
        data=TorrentListResponse(total=len(torrents), torrents=torrents),
        message="获取种子列表成功",
    )


def _write_temp_torrent(content: bytes) -> str:
    with tempfile.NamedTemporaryFile(suffix=".torrent", delete=False) as f:
        f.write(content)
        return f.name


@router.post("/torrents/file")
async def add_torrent_file(
    file: UploadFile = File(..., description="种子文件"),
    x_owner_id: Optional[str] = Header(None),
):
    owner_id = _require_owner(x_owner_id)

    content = await file.read(MAX_TORRENT_FILE_BYTES + 1)
    if len(content) > MAX_TORRENT_FILE_BYTES:
        raise HTTPException(status_code=413, detail="种子文件超过 2MB 限制")

    path = await asyncio.to_thread(_write_temp_torrent, content)
    try:
        result = await _coordinator.add_from_file(owner_id, path)
    finally:
        await asyncio.to_thread(os.remove, path)

    logger.info(f"[add_torrent_file] 添加结果: {result.outcome.value}, hash={result.hash_string}")
    return _add_response(result)


@router.post("/torrents/link")
async def add_torrent_link(request: AddLinkRequest, x_owner_id: Optional[str] = Header(None)):
    owner_id = _require_owner(x_owner_id)

    result = await _coordinator.add_from_url(owner_id, request.link)

    logger.info(f"[add_torrent_link] 添加结果: {result.outcome.value}, hash={result.hash_string}")
    return _add_response(result)


@router.get("/torrents/{torrent_id}")
async def get_torrent(torrent_id: int):
    torrent = await _reconciler.get_merged(torrent_id)
    if torrent is None:
        raise HTTPException(status_code=404, detail=f"种子 '{torrent_id}' 不存在")

    return success_response(data=torrent, message="获取种子详情成功")


@router.get("/torrents/{torrent_id}/files/{file_index}/token")
async def get_file_token(torrent_id: int, file_index: int):
    scope = await _reconciler.resolve_file(torrent_id, file_index)
    if scope is None:
        raise HTTPException(status_code=404, detail="种子或文件不存在")

    issued = _token_service.issue(scope.hash_string, scope.file_path)
    return success_response(
        data=TokenResponse(token=issued.token, expires_at=issued.expires_at),
        message="令牌签发成功",
    )


@router.get("/torrents/{torrent_id}/token")
async def get_item_token(
    torrent_id: int,
    path: Optional[str] = Query(None, description="种子内的路径，默认为种子名称"),
):
    scope = await _reconciler.resolve_item(torrent_id, path)
    if scope is None:
        raise HTTPException(status_code=404, detail=f"种子 '{torrent_id}' 不存在")

    issued = _token_service.issue(scope.hash_string, scope.file_path)
    return success_response(
        data=TokenResponse(token=issued.token, expires_at=issued.expires_at),
        message="令牌签发成功",
    )


@router.delete("/torrents/{torrent_id}")
async def delete_torrent(torrent_id: int):
    outcome = await _coordinator.remove(torrent_id)
    if outcome == RemoveOutcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail=f"种子 '{torrent_id}' 不存在")

    return success_response(
        data=DeleteTorrentResponse(message="种子删除成功"), message="种子删除成功"
    )
