"""
HTTP 错误映射 - 领域异常 → JSON {success: false, error, details, code}
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..interfaces import (
    DocMergeError,
    GenerationCancelled,
    RenderFailure,
    RequestInvalid,
    RequestTimeout,
    RowOutOfRange,
    TemplateInvalid,
    WorkerUnavailable,
)
from .schemas import ErrorResponse

logger = logging.getLogger(__name__)

_STATUS = {
    RequestInvalid: 400,
    RowOutOfRange: 400,
    TemplateInvalid: 422,
    RenderFailure: 500,
    RequestTimeout: 504,
    WorkerUnavailable: 503,
}

GENERATION_FAILED = "文档生成失败"


class DatasetNotFound(Exception):
    """dataset_ref 无法解析"""


def error_response(status_code: int, error: str, details: str | None = None, code: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details, code=code)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def status_for(exc: DocMergeError) -> int:
    for cls, status in _STATUS.items():
        if isinstance(exc, cls):
            return status
    return 500


def register_error_handlers(app: FastAPI) -> None:
    """注册异常处理器"""

    @app.exception_handler(DocMergeError)
    async def _domain_error(request: Request, exc: DocMergeError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            logger.error(f"{request.url.path} 失败: {exc.code}: {exc.message}")
            return error_response(status, GENERATION_FAILED, exc.message, exc.code)
        return error_response(status, exc.message, None, exc.code)

    @app.exception_handler(GenerationCancelled)
    async def _cancelled(request: Request, exc: GenerationCancelled) -> JSONResponse:
        return error_response(409, exc.message, f"已完成 {exc.completed} 行", "CANCELLED")

    @app.exception_handler(DatasetNotFound)
    async def _dataset_missing(request: Request, exc: DatasetNotFound) -> JSONResponse:
        return error_response(404, str(exc), None, "DATASET_NOT_FOUND")

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
        return error_response(422, "请求格式错误", details, RequestInvalid.code)
