"""
@description 种子记录模型
@responsibility 持久化本系统登记的种子：所有者、内容 hash、创建时名称
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from app.core.database import Base


class TorrentRecord(Base):
    __tablename__ = "torrent_record"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(String(255), nullable=False, index=True)
    # 内容 hash 全局唯一，重复添加由数据库约束拒绝
    hash_string = Column(String(64), nullable=False, unique=True)
    created_name = Column(String(512))
    created_at = Column(DateTime, default=datetime.now)
