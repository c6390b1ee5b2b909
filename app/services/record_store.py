"""
@description 种子记录仓储
@responsibility 提供 TorrentRecord 的查询、创建（hash 唯一）和删除
"""

from typing import Optional

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from app.core.database import get_session
from app.core.exceptions import DuplicateHashError
from app.models.torrent_record import TorrentRecord


class RecordStore:
    """TorrentRecord 仓储，默认使用 get_session，session_factory 可替换为测试用的内存数据库"""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session

    async def get_all(self) -> list[TorrentRecord]:
        async with self._session_factory() as session:
            result = await session.execute(select(TorrentRecord).order_by(TorrentRecord.id))
            return list(result.scalars().all())

    async def get(self, record_id: int) -> Optional[TorrentRecord]:
        async with self._session_factory() as session:
            return await session.get(TorrentRecord, record_id)

    async def create(self, owner_id: str, hash_string: str, name: str) -> TorrentRecord:
        """
        创建记录

        Raises:
            DuplicateHashError: hash 已被任意用户登记（由唯一约束保证，并发添加时败者收到此异常）
        """
        async with self._session_factory() as session:
            record = TorrentRecord(
                owner_id=owner_id,
                hash_string=hash_string,
                created_name=name,
            )
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateHashError(hash_string) from e

            await session.refresh(record)
            logger.info(f"种子记录已创建: id={record.id}, hash={hash_string}, owner={owner_id}")
            return record

    async def remove(self, record_id: int) -> bool:
        """删除记录，返回是否确有记录被删除"""
        async with self._session_factory() as session:
            result = await session.execute(
                delete(TorrentRecord).where(TorrentRecord.id == record_id)
            )
            await session.commit()
            return (result.rowcount or 0) > 0
