"""Exception handling for FastAPI routes.

统一异常处理，集成 domains.core 的 ApplicationError 体系:
- ApplicationError 及其子类按错误分类映射 HTTP 状态码，响应体携带错误码
- 请求参数校验失败统一为 400 VALIDATION_ERROR
- 未处理的异常记录堆栈并返回 500
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from domains.core import ApplicationError

logger = logging.getLogger(__name__)


def _error_body(code: str, message: str, details=None) -> dict:
    return {
        "success": False,
        "error": message,
        "code": code,
        "details": details,
    }


# ============================================================================
# FastAPI 异常处理器
# ============================================================================

def register_exception_handlers(app: FastAPI) -> None:
    """
    注册 FastAPI 异常处理器

    使用示例:
        app = FastAPI()
        register_exception_handlers(app)
    """

    @app.exception_handler(ApplicationError)
    async def application_error_handler(
        request: Request,
        exc: ApplicationError
    ) -> JSONResponse:
        """处理 ApplicationError 及其子类"""
        log = logger.error if exc.http_status_code >= 500 else logger.warning
        log(
            f"Application error: [{exc.code}] {exc.message}",
            extra={"details": exc.details}
        )

        return JSONResponse(
            status_code=exc.http_status_code,
            content=_error_body(exc.code, exc.message, exc.details),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request,
        exc: RequestValidationError
    ) -> JSONResponse:
        """请求体/参数校验失败"""
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        logger.warning(f"Request validation error: {request.url.path}: {errors}")

        return JSONResponse(
            status_code=400,
            content=_error_body("VALIDATION_ERROR", "请求参数无效", {"validation_errors": errors}),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        """全局异常处理器 - 捕获所有未处理的异常"""
        logger.exception(
            f"Unhandled exception: {type(exc).__name__}: {exc}",
            extra={
                "path": request.url.path,
                "method": request.method,
            }
        )

        return JSONResponse(
            status_code=500,
            content=_error_body("INTERNAL_ERROR", f"Internal server error: {type(exc).__name__}"),
        )


__all__ = [
    "register_exception_handlers",
]
