"""
@description 种子生命周期协调器
@responsibility 编排添加/删除：先操作引擎再操作记录，并定义部分失败时的结果
"""

from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import DuplicateHashError
from app.schemas.torrent import (
    AddOutcome,
    AddResult,
    IngestResult,
    RecordSnapshot,
    RemoveOutcome,
)

if TYPE_CHECKING:
    from app.services.engine_client import EngineClient
    from app.services.record_store import RecordStore


class TorrentLifecycleCoordinator:
    """
    添加：引擎先接收种子，再按请求者登记记录。引擎侧天然去重，
    重复添加不回滚引擎操作，只有记录层保证每个 hash 只有一条记录。

    删除：先从引擎删除，成功后再删除记录。中途崩溃最多留下孤立记录，
    再次调用 remove 即可恢复。
    """

    def __init__(self, record_store: "RecordStore", engine_client: "EngineClient"):
        self._records = record_store
        self._engine = engine_client

    async def add_from_file(self, owner_id: str, path: str) -> AddResult:
        created = await self._engine.ingest_file(path)
        return await self._register(owner_id, created)

    async def add_from_url(self, owner_id: str, uri: str) -> AddResult:
        created = await self._engine.ingest_url(uri)
        return await self._register(owner_id, created)

    async def _register(self, owner_id: str, created: IngestResult) -> AddResult:
        hash_string = created.hash_string

        try:
            record = await self._records.create(owner_id, hash_string, created.name)
        except DuplicateHashError:
            # 任何用户已登记过该内容都视为冲突，并发添加时由唯一约束决定胜者
            logger.warning(f"种子已存在，拒绝重复登记: hash={hash_string}, 请求者={owner_id}")
            return AddResult(outcome=AddOutcome.CONFLICT, hash_string=hash_string)
        except SQLAlchemyError as e:
            logger.error(f"引擎已接收种子但记录创建失败，可重试添加: hash={hash_string}, 错误: {e}")
            return AddResult(outcome=AddOutcome.PARTIAL_ORPHAN, hash_string=hash_string)

        return AddResult(
            outcome=AddOutcome.CREATED,
            hash_string=hash_string,
            record=RecordSnapshot.model_validate(record),
        )

    async def remove(self, record_id: int) -> RemoveOutcome:
        record = await self._records.get(record_id)
        if record is None:
            return RemoveOutcome.NOT_FOUND

        # 引擎删除失败时异常向上抛出，记录保持不变
        await self._engine.stop(record.hash_string)

        if not await self._records.remove(record.id):
            # 并发删除已先完成
            return RemoveOutcome.NOT_FOUND

        logger.info(f"种子已删除: id={record.id}, hash={record.hash_string}")
        return RemoveOutcome.REMOVED
