"""
@description 种子状态合并服务
@responsibility 将数据库中的种子记录与引擎实时状态按 hash 合并，解析令牌作用域
"""

import asyncio
import posixpath
from typing import TYPE_CHECKING, Optional

from loguru import logger

from app.core.exceptions import EngineFaultError, PathOutOfScopeError
from app.schemas.torrent import EngineStatus, MergedTorrentView, TokenScope

if TYPE_CHECKING:
    from app.models.torrent_record import TorrentRecord
    from app.services.engine_client import EngineClient
    from app.services.record_store import RecordStore


def merge_view(record: "TorrentRecord", status: EngineStatus) -> MergedTorrentView:
    """身份字段取自记录，展示和状态字段全部取自引擎"""
    return MergedTorrentView(
        id=record.id,
        owner_id=record.owner_id,
        hash_string=record.hash_string,
        created_at=record.created_at,
        name=status.name,
        downloaded_bytes=status.downloaded_bytes,
        uploaded_bytes=status.uploaded_bytes,
        status=status.status,
        total_size=status.total_size,
        percent_done=status.percent_done,
        rate_download=status.rate_download,
        rate_upload=status.rate_upload,
        bytes_completed=status.bytes_completed,
        files=list(status.files),
    )


def _scoped_path(path: str, status: EngineStatus) -> Optional[str]:
    """
    路径等于种子名、某个文件，或是某个文件所在的目录时返回规范化后的路径，
    否则返回 None
    """
    normalized = posixpath.normpath(path.strip("/"))
    if normalized in (".", "..") or normalized.startswith("../"):
        return None
    if normalized == status.name:
        return normalized
    for item in status.files:
        file_path = posixpath.normpath(item.name)
        if file_path == normalized or file_path.startswith(normalized + "/"):
            return normalized
    return None


class Reconciler:
    """合并记录与引擎状态，不缓存任何数据"""

    def __init__(self, record_store: "RecordStore", engine_client: "EngineClient"):
        self._records = record_store
        self._engine = engine_client

    async def list_merged(self) -> list[MergedTorrentView]:
        records, statuses = await asyncio.gather(
            self._records.get_all(),
            self._engine.stats_for_all(),
        )

        missing = [r.hash_string for r in records if r.hash_string not in statuses]
        if missing:
            # 丢弃会导致清单不完整，必须显式报错
            logger.error(f"引擎缺少 {len(missing)} 个已登记种子的状态: {missing}")
            raise EngineFaultError(missing)

        return [merge_view(r, statuses[r.hash_string]) for r in records]

    async def _load(self, record_id: int) -> Optional[tuple["TorrentRecord", EngineStatus]]:
        record = await self._records.get(record_id)
        if record is None:
            return None

        status = await self._engine.stats_for(record.hash_string)
        if status is None:
            logger.error(f"引擎没有种子状态: id={record_id}, hash={record.hash_string}")
            raise EngineFaultError([record.hash_string])

        return record, status

    async def get_merged(self, record_id: int) -> Optional[MergedTorrentView]:
        """记录不存在返回 None；记录存在但引擎无状态抛出 EngineFaultError"""
        loaded = await self._load(record_id)
        if loaded is None:
            return None
        return merge_view(*loaded)

    async def resolve_file(self, record_id: int, file_index: int) -> Optional[TokenScope]:
        """按文件序号解析令牌作用域，记录不存在或序号越界返回 None"""
        loaded = await self._load(record_id)
        if loaded is None:
            return None

        record, status = loaded
        if file_index < 0 or file_index >= len(status.files):
            logger.info(f"文件序号越界: id={record_id}, index={file_index}, 共 {len(status.files)} 个文件")
            return None

        return TokenScope(
            hash_string=record.hash_string,
            file_path=status.files[file_index].name,
        )

    async def resolve_item(self, record_id: int, path: Optional[str] = None) -> Optional[TokenScope]:
        """
        解析整个种子的令牌作用域

        未指定路径时使用记录创建时的名称；指定路径时必须能在该种子内枚举到，
        否则抛出 PathOutOfScopeError
        """
        if not path:
            record = await self._records.get(record_id)
            if record is None:
                return None
            return TokenScope(
                hash_string=record.hash_string,
                file_path=record.created_name or record.hash_string,
            )

        loaded = await self._load(record_id)
        if loaded is None:
            return None

        record, status = loaded
        scoped = _scoped_path(path, status)
        if scoped is None:
            raise PathOutOfScopeError(path, record.hash_string)

        return TokenScope(hash_string=record.hash_string, file_path=scoped)
