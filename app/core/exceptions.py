"""
@description 业务异常定义
@responsibility 定义引擎故障、令牌校验失败等错误类型，供全局异常处理器映射为 HTTP 响应
"""

from typing import Optional


class TorrentHubError(Exception):
    """所有业务异常的基类"""


class EngineError(TorrentHubError):
    """下载引擎不可达或拒绝了请求"""


class EngineFaultError(TorrentHubError):
    """引擎可达，但对已登记的种子没有返回状态（数据不一致）"""

    def __init__(self, hash_strings: list[str]):
        self.hash_strings = list(hash_strings)
        super().__init__(f"引擎缺少以下种子的状态: {', '.join(self.hash_strings)}")


class DuplicateHashError(TorrentHubError):
    """记录表中已存在相同 hash 的种子"""

    def __init__(self, hash_string: str):
        self.hash_string = hash_string
        super().__init__(f"种子已存在: {hash_string}")


class TokenInvalidError(TorrentHubError):
    """令牌签名错误、已过期或声明不完整"""

    def __init__(self, reason: str, detail: Optional[str] = None):
        self.reason = reason
        super().__init__(detail or reason)


class PathOutOfScopeError(TorrentHubError):
    """请求的路径不属于该种子"""

    def __init__(self, path: str, hash_string: str):
        self.path = path
        self.hash_string = hash_string
        super().__init__(f"路径 '{path}' 不属于种子 {hash_string}")


class EngineNotFoundError(EngineError):
    """引擎未跟踪请求的种子"""


class InvalidTorrentError(TorrentHubError):
    """上传的内容不是有效的种子文件"""
