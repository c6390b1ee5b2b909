"""
@description 访问令牌校验接口
@responsibility 供文件下载服务校验令牌并取得作用域
"""

from typing import TYPE_CHECKING

from fastapi import APIRouter

from app.schemas.api import VerifyTokenRequest, VerifyTokenResponse, success_response

if TYPE_CHECKING:
    from app.services.token_service import CapabilityTokenService

router = APIRouter()

_token_service: "CapabilityTokenService" = None


def init_tokens_router(token_service: "CapabilityTokenService"):
    global _token_service
    _token_service = token_service


@router.post("/tokens/verify")
async def verify_token(request: VerifyTokenRequest):
    # 校验失败抛出 TokenInvalidError，由全局异常处理器返回 401
    claims = _token_service.verify(request.token)
    return success_response(
        data=VerifyTokenResponse(
            hash_string=claims.hash_string,
            file_path=claims.file_path,
            expires_at=claims.expires_at,
        ),
        message="令牌有效",
    )
