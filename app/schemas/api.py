"""
@description API 请求/响应模型
@responsibility 定义所有 API 接口的数据结构
"""

from datetime import datetime
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from app.schemas.torrent import AddOutcome, MergedTorrentView, RecordSnapshot


class AddLinkRequest(BaseModel):
    link: str = Field(..., min_length=1, description="magnet 链接或种子文件 URL")


class AddTorrentResponse(BaseModel):
    outcome: AddOutcome = Field(..., description="添加结果")
    record: RecordSnapshot = Field(..., description="种子记录")


class TorrentListResponse(BaseModel):
    total: int = Field(..., description="种子总数")
    torrents: list[MergedTorrentView] = Field(..., description="种子列表")


class TokenResponse(BaseModel):
    token: str = Field(..., description="访问令牌")
    expires_at: datetime = Field(..., description="过期时间")


class VerifyTokenRequest(BaseModel):
    token: str = Field(..., min_length=1, description="访问令牌")


class VerifyTokenResponse(BaseModel):
    hash_string: str = Field(..., description="种子 hash")
    file_path: str = Field(..., description="文件路径")
    expires_at: datetime = Field(..., description="过期时间")


class DeleteTorrentResponse(BaseModel):
    message: str = Field(..., description="操作消息")


class StatusResponse(BaseModel):
    engine_connected: bool = Field(..., description="引擎是否已连接")
    engine_version: Optional[str] = Field(None, description="引擎版本")
    engine_torrents: int = Field(..., description="引擎中的种子数量")


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """统一 API 响应格式"""

    code: int = Field(..., description="响应码（0=成功，非0=错误）")
    message: str = Field(..., description="响应消息")
    data: Optional[T] = Field(None, description="响应数据")


def success_response(data: T, message: str = "操作成功") -> ApiResponse[T]:
    """创建成功响应"""
    return ApiResponse(code=0, message=message, data=data)


def error_response(code: int, message: str, data: Optional[T] = None) -> ApiResponse[T]:
    """创建错误响应"""
    return ApiResponse(code=code, message=message, data=data)
