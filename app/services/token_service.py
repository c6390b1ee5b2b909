"""
@description 文件访问令牌服务
@responsibility 签发和校验限定单个种子单个文件、带过期时间的 JWT
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable, Optional

import jwt
from loguru import logger

from app.core.exceptions import TokenInvalidError
from app.schemas.torrent import IssuedToken, TokenClaims

if TYPE_CHECKING:
    from app.core.config import TokenConfig

HASH_CLAIM = "hashString"
PATH_CLAIM = "filePath"
REQUIRED_CLAIMS = ["exp", "iat", HASH_CLAIM, PATH_CLAIM]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_timestamp(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class CapabilityTokenService:
    """
    令牌只声明 (hashString, filePath) 和有效期，不包含请求者身份。

    签发前由调用方确认种子和文件存在；校验时不查询引擎或数据库，
    种子被删除后令牌在过期前仍然结构有效。
    """

    def __init__(
        self,
        secret: str,
        ttl: timedelta = timedelta(hours=24),
        algorithm: str = "HS256",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if not secret:
            raise ValueError("令牌签名密钥不能为空")
        self._secret = secret
        self._ttl = ttl
        self._algorithm = algorithm
        self._clock = clock or _utcnow

    @classmethod
    def from_config(cls, config: "TokenConfig") -> "CapabilityTokenService":
        return cls(
            secret=config.secret,
            ttl=timedelta(hours=config.ttl_hours),
            algorithm=config.algorithm,
        )

    def issue(self, hash_string: str, file_path: str) -> IssuedToken:
        issued_at = self._clock()
        expires_at = issued_at + self._ttl
        payload = {
            HASH_CLAIM: hash_string,
            PATH_CLAIM: file_path,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "jti": uuid.uuid4().hex,
        }
        token = jwt.encode(payload, self._secret, algorithm=self._algorithm)
        logger.info(f"已签发访问令牌: hash={hash_string}, path={file_path}, 过期时间={expires_at.isoformat()}")
        return IssuedToken(token=token, expires_at=expires_at)

    def verify(self, token: str) -> TokenClaims:
        """
        校验令牌并返回声明

        Raises:
            TokenInvalidError: 签名无效、已过期、格式错误或缺少声明
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                # 过期时间按注入的时钟校验
                options={"require": REQUIRED_CLAIMS, "verify_exp": False, "verify_iat": False},
            )
        except jwt.MissingRequiredClaimError as e:
            raise TokenInvalidError("missing_claims", f"令牌缺少声明: {e.claim}") from e
        except jwt.InvalidSignatureError as e:
            raise TokenInvalidError("signature", "令牌签名无效") from e
        except jwt.InvalidTokenError as e:
            raise TokenInvalidError("malformed", f"令牌格式无效: {e}") from e

        if not _is_timestamp(payload["exp"]) or not _is_timestamp(payload["iat"]):
            raise TokenInvalidError("malformed", "令牌时间声明格式无效")
        if payload["exp"] <= self._clock().timestamp():
            raise TokenInvalidError("expired", "令牌已过期")

        hash_string = payload.get(HASH_CLAIM)
        file_path = payload.get(PATH_CLAIM)
        if not isinstance(hash_string, str) or not hash_string:
            raise TokenInvalidError("missing_claims", f"令牌缺少声明: {HASH_CLAIM}")
        if not isinstance(file_path, str) or not file_path:
            raise TokenInvalidError("missing_claims", f"令牌缺少声明: {PATH_CLAIM}")

        return TokenClaims(
            hash_string=hash_string,
            file_path=file_path,
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            token_id=payload.get("jti"),
        )
