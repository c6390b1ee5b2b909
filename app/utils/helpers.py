"""
@description 通用工具函数
@responsibility 解析种子 info_hash、归一化引擎状态
"""

from __future__ import annotations

import base64
import hashlib
import re
from typing import Optional

from app.schemas.torrent import TorrentStatus

MAX_BENCODE_DEPTH = 256


def parse_info_hash_from_magnet(magnet: str) -> Optional[str]:
    """
    从 magnet 链接中解析 info_hash (BTIH)

    支持两种格式：
    1. 40 位 hex 格式：0123456789abcdef...
    2. 32 位 base32 格式：AAAAAAAAAAAAAAAA...（自动转换为 hex）

    Args:
        magnet: magnet 链接字符串，格式如 magnet:?xt=urn:btih:<hash>

    Returns:
        40 位小写 hex 字符串，解析失败返回 None

    Examples:
        >>> parse_info_hash_from_magnet("magnet:?xt=urn:btih:0123456789abcdef0123456789abcdef01234567")
        '0123456789abcdef0123456789abcdef01234567'

        >>> parse_info_hash_from_magnet("invalid")
        None
    """
    if not magnet or not isinstance(magnet, str):
        return None

    # hex: 40 位 0-9a-fA-F；base32: 32 位 A-Z2-7
    match = re.search(
        r"xt=urn:btih:([a-fA-F0-9]{40}|[A-Z2-7]{32})(?![A-Za-z0-9])",
        magnet,
        re.IGNORECASE,
    )
    if not match:
        return None

    hash_str = match.group(1)

    if len(hash_str) == 40:
        return hash_str.lower()

    try:
        # Base32 解码需要大写
        return base64.b32decode(hash_str.upper()).hex().lower()
    except ValueError:
        return None


def _skip_bencoded(data: bytes, index: int) -> int:
    """跳过一个 bencode 值，返回其结束后的位置；嵌套层数超过 MAX_BENCODE_DEPTH 视为无效"""
    depth = 0
    while True:
        if index >= len(data):
            raise ValueError("bencode 数据意外结束")

        token = data[index : index + 1]
        if token == b"e":
            if depth == 0:
                raise ValueError("多余的 bencode 结束标记")
            depth -= 1
            index += 1
        elif token in (b"l", b"d"):
            depth += 1
            if depth > MAX_BENCODE_DEPTH:
                raise ValueError("bencode 嵌套层数过深")
            index += 1
            continue
        elif token == b"i":
            index = data.index(b"e", index) + 1
        elif token.isdigit():
            colon = data.index(b":", index)
            length = int(data[index:colon])
            index = colon + 1 + length
            if index > len(data):
                raise ValueError("bencode 字符串长度越界")
        else:
            raise ValueError(f"无效的 bencode 标记: {token!r}")

        if depth == 0:
            return index


def info_hash_from_torrent_bytes(data: bytes) -> Optional[str]:
    """
    计算 .torrent 文件的 info_hash：顶层字典中 info 值原始字节的 SHA-1

    Returns:
        40 位小写 hex 字符串，文件格式无效时返回 None
    """
    if not data or data[:1] != b"d":
        return None

    try:
        index = 1
        while data[index : index + 1] != b"e":
            if index >= len(data):
                return None
            key_end = _skip_bencoded(data, index)
            colon = data.index(b":", index)
            key = data[colon + 1 : key_end]
            value_end = _skip_bencoded(data, key_end)
            if key == b"info":
                return hashlib.sha1(data[key_end:value_end]).hexdigest()
            index = value_end
    except ValueError:
        return None

    return None


_STATE_MAP = {
    "downloading": TorrentStatus.DOWNLOADING,
    "forcedDL": TorrentStatus.DOWNLOADING,
    "metaDL": TorrentStatus.DOWNLOADING,
    "forcedMetaDL": TorrentStatus.DOWNLOADING,
    "stalledDL": TorrentStatus.DOWNLOADING,
    "uploading": TorrentStatus.SEEDING,
    "forcedUP": TorrentStatus.SEEDING,
    "stalledUP": TorrentStatus.SEEDING,
    "pausedDL": TorrentStatus.STOPPED,
    "pausedUP": TorrentStatus.STOPPED,
    "stoppedDL": TorrentStatus.STOPPED,
    "stoppedUP": TorrentStatus.STOPPED,
    "checkingDL": TorrentStatus.CHECKING,
    "checkingUP": TorrentStatus.CHECKING,
    "checkingResumeData": TorrentStatus.CHECKING,
    "moving": TorrentStatus.CHECKING,
    "queuedDL": TorrentStatus.QUEUED,
    "queuedUP": TorrentStatus.QUEUED,
    "allocating": TorrentStatus.QUEUED,
    "error": TorrentStatus.ERROR,
    "missingFiles": TorrentStatus.ERROR,
}


def map_engine_state(state: Optional[str]) -> TorrentStatus:
    """将 qBittorrent 的状态字符串归一化为 TorrentStatus"""
    return _STATE_MAP.get(state or "", TorrentStatus.UNKNOWN)
