"""
@description 种子领域数据结构
@responsibility 定义引擎状态快照、合并视图、令牌声明以及生命周期操作的结果类型
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TorrentStatus(str, Enum):
    DOWNLOADING = "downloading"
    SEEDING = "seeding"
    STOPPED = "stopped"
    CHECKING = "checking"
    QUEUED = "queued"
    ERROR = "error"
    UNKNOWN = "unknown"


class EngineFile(BaseModel):
    name: str = Field(..., description="文件在种子内的相对路径")
    size: int = Field(0, description="文件大小（字节）")
    progress: float = Field(0.0, description="下载进度（0-1）")


class EngineStatus(BaseModel):
    """引擎实时状态，不持久化，每次查询重新获取"""

    hash_string: str = Field(..., description="内容 hash")
    name: str = Field(..., description="引擎报告的名称")
    downloaded_bytes: int = Field(0, description="累计下载量")
    uploaded_bytes: int = Field(0, description="累计上传量")
    status: TorrentStatus = Field(TorrentStatus.UNKNOWN, description="归一化后的状态")
    total_size: int = Field(0, description="总大小")
    percent_done: float = Field(0.0, description="完成比例（0-1）")
    rate_download: int = Field(0, description="下载速度（字节/秒）")
    rate_upload: int = Field(0, description="上传速度（字节/秒）")
    bytes_completed: int = Field(0, description="已完成字节数")
    files: list[EngineFile] = Field(default_factory=list, description="文件列表（按引擎顺序）")


class MergedTorrentView(BaseModel):
    """记录身份字段 + 引擎状态字段的合并视图"""

    id: int
    owner_id: str
    hash_string: str
    created_at: Optional[datetime] = None
    name: str
    downloaded_bytes: int
    uploaded_bytes: int
    status: TorrentStatus
    total_size: int
    percent_done: float
    rate_download: int
    rate_upload: int
    bytes_completed: int
    files: list[EngineFile] = Field(default_factory=list)


class IngestResult(BaseModel):
    hash_string: str
    name: str


class TokenScope(BaseModel):
    hash_string: str
    file_path: str


class TokenClaims(TokenScope):
    issued_at: datetime
    expires_at: datetime
    token_id: Optional[str] = None


class IssuedToken(BaseModel):
    token: str
    expires_at: datetime


class AddOutcome(str, Enum):
    CREATED = "created"
    CONFLICT = "conflict"
    PARTIAL_ORPHAN = "partial_orphan"


class RemoveOutcome(str, Enum):
    REMOVED = "removed"
    NOT_FOUND = "not_found"


class RecordSnapshot(BaseModel):
    """TorrentRecord 的只读副本，脱离数据库会话使用"""

    id: int
    owner_id: str
    hash_string: str
    created_name: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AddResult(BaseModel):
    outcome: AddOutcome
    hash_string: str
    record: Optional[RecordSnapshot] = None
