"""
@description 全局异常处理器
@responsibility 将 HTTP、参数校验和业务异常统一转换为 ApiResponse 格式
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import (
    EngineError,
    EngineFaultError,
    InvalidTorrentError,
    PathOutOfScopeError,
    TokenInvalidError,
)
from app.schemas.api import ApiResponse


def _json_error(status_code: int, message: str, data=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse(code=status_code, message=message, data=data).model_dump(),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """处理 HTTP 异常"""
    logger.info(f"HTTP 异常处理器被调用: {exc.status_code} - {exc.detail}")
    return _json_error(exc.status_code, exc.detail)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """处理请求参数验证错误"""
    logger.info(f"验证错误处理器被调用: {len(exc.errors())} 个错误")
    errors = [
        {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
        for error in exc.errors()
    ]
    return _json_error(422, "请求参数验证失败", {"errors": errors})


async def engine_fault_handler(request: Request, exc: EngineFaultError):
    """引擎缺少已登记种子的状态"""
    logger.error(f"引擎数据不一致: {exc}")
    return _json_error(502, "下载引擎缺少种子状态", {"hash_strings": exc.hash_strings})


async def engine_error_handler(request: Request, exc: EngineError):
    logger.error(f"下载引擎错误: {exc}")
    return _json_error(502, str(exc))


async def token_invalid_handler(request: Request, exc: TokenInvalidError):
    logger.info(f"令牌校验失败: {exc.reason}")
    return _json_error(401, str(exc), {"reason": exc.reason})


async def path_out_of_scope_handler(request: Request, exc: PathOutOfScopeError):
    return _json_error(400, str(exc))


async def invalid_torrent_handler(request: Request, exc: InvalidTorrentError):
    logger.info(f"拒绝无效的种子文件: {exc}")
    return _json_error(400, str(exc))


async def general_exception_handler(request: Request, exc: Exception):
    """处理通用异常"""
    logger.exception(f"服务器内部错误: {str(exc)}")
    return _json_error(500, "服务器内部错误")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(EngineFaultError, engine_fault_handler)
    app.add_exception_handler(EngineError, engine_error_handler)
    app.add_exception_handler(TokenInvalidError, token_invalid_handler)
    app.add_exception_handler(PathOutOfScopeError, path_out_of_scope_handler)
    app.add_exception_handler(InvalidTorrentError, invalid_torrent_handler)
    app.add_exception_handler(Exception, general_exception_handler)
