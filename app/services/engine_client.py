"""
@description qbittorrent-api 异步封装
@responsibility 查询下载引擎中种子的实时状态，提交种子并删除种子
"""

import asyncio
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping, Optional

import qbittorrentapi
from loguru import logger

from app.core.exceptions import EngineError, EngineNotFoundError, InvalidTorrentError
from app.schemas.torrent import EngineFile, EngineStatus, IngestResult
from app.utils.helpers import (
    info_hash_from_torrent_bytes,
    map_engine_state,
    parse_info_hash_from_magnet,
)

if TYPE_CHECKING:
    from app.core.config import EngineConfig

INGEST_TAG_PREFIX = "torrent-hub-"


def _to_engine_status(torrent: Mapping[str, Any], files: Optional[list] = None) -> EngineStatus:
    return EngineStatus(
        hash_string=str(torrent.get("hash", "")).lower(),
        name=torrent.get("name", ""),
        downloaded_bytes=torrent.get("downloaded", 0) or 0,
        uploaded_bytes=torrent.get("uploaded", 0) or 0,
        status=map_engine_state(torrent.get("state")),
        total_size=torrent.get("total_size", 0) or 0,
        percent_done=torrent.get("progress", 0.0) or 0.0,
        rate_download=torrent.get("dlspeed", 0) or 0,
        rate_upload=torrent.get("upspeed", 0) or 0,
        bytes_completed=torrent.get("completed", 0) or 0,
        files=[
            EngineFile(
                name=item.get("name", ""),
                size=item.get("size", 0) or 0,
                progress=item.get("progress", 0.0) or 0.0,
            )
            for item in (files or [])
        ],
    )


class EngineClient:
    """下载引擎客户端，启动时 connect，关闭时 close"""

    def __init__(self, config: "EngineConfig"):
        self._config = config
        self._max_retries = config.max_retries
        self._poll_attempts = config.poll_attempts
        self._poll_interval = config.poll_interval
        self._client = qbittorrentapi.Client(
            host=config.host,
            port=config.port,
            username=config.username,
            password=config.password,
        )

    async def connect(self) -> None:
        """登录引擎 WebUI"""
        await self._retry_with_backoff(self._client.auth_log_in)
        logger.info(f"已连接下载引擎: {self._config.host}:{self._config.port}")

    async def close(self) -> None:
        """注销引擎会话"""
        try:
            await asyncio.to_thread(self._client.auth_log_out)
        except qbittorrentapi.APIError as e:
            logger.warning(f"注销引擎会话失败: {e}")
        logger.info("下载引擎连接已关闭")

    def is_connected(self) -> bool:
        return bool(self._client.is_logged_in)

    async def version(self) -> str:
        return await self._retry_with_backoff(self._client.app_version)

    async def _retry_with_backoff(self, func, *args, **kwargs) -> Any:
        """执行 API 调用并在连接失败时自动重试（指数退避）"""
        for attempt in range(self._max_retries):
            try:
                return await asyncio.to_thread(func, *args, **kwargs)
            except qbittorrentapi.NotFound404Error as e:
                raise EngineNotFoundError(f"引擎未找到种子: {e}") from e
            except qbittorrentapi.HTTP4XXError as e:
                logger.error(f"引擎拒绝了请求: {e}")
                raise EngineError(f"引擎拒绝了请求: {e}") from e
            except qbittorrentapi.LoginFailed as e:
                logger.error(f"引擎登录失败: {e}")
                raise EngineError(f"引擎登录失败: {e}") from e
            except qbittorrentapi.APIConnectionError as e:
                if attempt == self._max_retries - 1:
                    logger.error(f"引擎 API 调用失败，已达到最大重试次数: {e}")
                    raise EngineError(f"下载引擎不可用: {e}") from e

                backoff_time = 2**attempt
                logger.warning(
                    f"引擎 API 调用失败（第 {attempt + 1} 次），{backoff_time}秒后重试: {e}"
                )
                await asyncio.sleep(backoff_time)
            except qbittorrentapi.APIError as e:
                logger.error(f"引擎 API 调用出错: {e}")
                raise EngineError(f"下载引擎错误: {e}") from e

    async def stats_for_all(self) -> dict[str, EngineStatus]:
        """获取引擎中所有种子的状态（不含文件列表），以 hash 为键"""
        torrents = await self._retry_with_backoff(self._client.torrents_info)
        statuses = {}
        for torrent in torrents:
            status = _to_engine_status(torrent)
            statuses[status.hash_string] = status
        return statuses

    async def stats_for(self, hash_string: str) -> Optional[EngineStatus]:
        """获取单个种子的状态和文件列表，引擎未跟踪该 hash 时返回 None"""
        torrents = await self._retry_with_backoff(
            self._client.torrents_info, torrent_hashes=hash_string
        )
        if not torrents:
            return None

        try:
            files = await self._retry_with_backoff(
                self._client.torrents_files, torrent_hash=hash_string
            )
        except EngineNotFoundError:
            # 查询间隙种子已被删除
            return None

        return _to_engine_status(torrents[0], files)

    async def ingest_file(self, path: str) -> IngestResult:
        """提交本地 .torrent 文件"""
        data = await asyncio.to_thread(Path(path).read_bytes)
        expected_hash = info_hash_from_torrent_bytes(data)
        if expected_hash is None:
            raise InvalidTorrentError(f"无效的种子文件: {Path(path).name}")
        return await self._ingest(expected_hash, torrent_files=data)

    async def ingest_url(self, uri: str) -> IngestResult:
        """提交 magnet 链接或 http(s) 种子地址"""
        return await self._ingest(parse_info_hash_from_magnet(uri), urls=uri)

    async def _ingest(self, expected_hash: Optional[str], **payload) -> IngestResult:
        tag = f"{INGEST_TAG_PREFIX}{uuid.uuid4().hex}"
        response = await self._retry_with_backoff(
            self._client.torrents_add, tags=tag, **payload
        )

        accepted = str(response).strip().lower().startswith("ok")
        if not accepted:
            # 引擎对重复内容返回 Fails.，此时按预期 hash 查找已有种子
            logger.warning(f"引擎未接受添加请求: {response}, 预期 hash={expected_hash}")
            if expected_hash is None:
                raise EngineError(f"引擎拒绝添加种子: {response}")

        try:
            torrent = await self._wait_for_torrent(expected_hash, tag if accepted else None)
        finally:
            if accepted:
                await self._drop_tag(tag)

        if torrent is None:
            raise EngineError(f"种子已提交但未能在引擎中找到: {expected_hash or tag}")

        result = IngestResult(
            hash_string=str(torrent.get("hash", "")).lower(),
            name=torrent.get("name", ""),
        )
        logger.info(f"引擎已接收种子: hash={result.hash_string}, name={result.name}")
        return result

    async def _wait_for_torrent(
        self, expected_hash: Optional[str], tag: Optional[str]
    ) -> Optional[Mapping[str, Any]]:
        """轮询引擎直到种子出现，优先按 hash 查找，其次按提交标签查找"""
        for attempt in range(self._poll_attempts):
            if expected_hash:
                torrents = await self._retry_with_backoff(
                    self._client.torrents_info, torrent_hashes=expected_hash
                )
                if torrents:
                    return torrents[0]
            if tag:
                torrents = await self._retry_with_backoff(
                    self._client.torrents_info, tag=tag
                )
                if torrents:
                    return torrents[0]

            logger.debug(f"等待引擎登记种子（第 {attempt + 1} 次）: {expected_hash or tag}")
            await asyncio.sleep(self._poll_interval)

        return None

    async def _drop_tag(self, tag: str) -> None:
        try:
            await asyncio.to_thread(self._client.torrents_delete_tags, tags=tag)
        except qbittorrentapi.APIError as e:
            logger.warning(f"清理提交标签失败: {tag}, 错误: {e}")

    async def stop(self, hash_string: str) -> None:
        """从引擎删除种子，种子不存在时不视为错误"""
        await self._retry_with_backoff(
            self._client.torrents_delete,
            delete_files=self._config.delete_files,
            torrent_hashes=hash_string,
        )
        logger.info(f"引擎已删除种子: {hash_string}")
