"""
统一错误处理模块
提供标准化的错误响应格式和错误处理中间件

主要功能：
- 统一的错误响应格式 {success, error_code, message, details}
- 错误码到HTTP状态码的映射
- 未知异常记录到 structlog 和数据库日志表
"""

import traceback
from typing import Any, Dict, Optional
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .audit import write_audit_log
from .database import db_manager
from .exceptions import BaseApplicationError
from .logging import logger


class ErrorResponse:
    """标准错误响应格式"""

    def __init__(self, error_code: str, message: str,
                 details: Optional[Dict[str, Any]] = None,
                 http_status: int = 400):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }

    def to_json_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.http_status, content=self.to_dict())


class ErrorHandler:
    """全局错误处理器"""

    # 错误代码到HTTP状态码的映射
    ERROR_CODE_STATUS_MAP = {
        "VALIDATION_ERROR": 400,
        "INVALID_AMOUNT": 400,
        "AUTHENTICATION_REQUIRED": 401,
        "PAYMENT_NOT_CONFIRMED": 402,
        "PERMISSION_DENIED": 403,
        "RESOURCE_NOT_FOUND": 404,
        "INTERNAL_ERROR": 500,
        "EXTERNAL_SERVICE_ERROR": 502,
        "PERSISTENCE_ERROR": 503,

        # 业务规则冲突
        "BUSINESS_RULE_VIOLATION": 409,
        "PROFILE_INCOMPLETE": 409,
        "MULTI_RESTAURANT_CART": 409,
        "SELECTION_INCOMPLETE": 409,
        "INELIGIBLE_ITEMS": 409,
        "ITEM_UNAVAILABLE": 409,
        "TOTALS_MISMATCH": 409,
        "INVALID_STATUS_TRANSITION": 409,
        "PARTIAL_FAILURE": 409,
        "BUILDING_OUT_OF_RANGE": 409,

        # 账户与餐厅
        "ROLE_ALREADY_SELECTED": 409,
        "RESTAURANT_ALREADY_EXISTS": 409,
    }

    @classmethod
    def handle_application_error(cls, error: BaseApplicationError) -> ErrorResponse:
        """处理应用业务异常"""
        http_status = cls.ERROR_CODE_STATUS_MAP.get(error.error_code, 400)
        if http_status >= 500:
            logger.error("application_error", error_code=error.error_code, message=error.message)
        return ErrorResponse(
            error_code=error.error_code,
            message=error.message,
            details=error.details,
            http_status=http_status,
        )

    @classmethod
    def handle_http_exception(cls, error: StarletteHTTPException) -> ErrorResponse:
        """处理框架层HTTP异常（路由不存在、方法不允许等）"""
        error_code = {404: "RESOURCE_NOT_FOUND", 401: "AUTHENTICATION_REQUIRED", 403: "PERMISSION_DENIED"}
        return ErrorResponse(
            error_code=error_code.get(error.status_code, "HTTP_ERROR"),
            message=str(error.detail),
            details={"status_code": error.status_code},
            http_status=error.status_code,
        )

    @classmethod
    def handle_validation_error(cls, error: RequestValidationError) -> ErrorResponse:
        """处理请求体验证错误"""
        errors = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
            for e in error.errors()
        ]
        return ErrorResponse(
            error_code="VALIDATION_ERROR",
            message="请求参数验证失败",
            details={"validation_errors": errors},
            http_status=422,
        )

    @classmethod
    def handle_unknown_error(cls, error: Exception) -> ErrorResponse:
        """处理未知异常，不向客户端暴露内部信息"""
        error_details = {
            "type": type(error).__name__,
            "message": str(error),
            "traceback": traceback.format_exc(),
        }
        logger.error("unhandled_error", error_type=error_details["type"], exc_info=error)
        cls._log_system_error(error_details)

        return ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="系统内部错误",
            details={"error_type": type(error).__name__},
            http_status=500,
        )

    @classmethod
    def _log_system_error(cls, error_details: Dict[str, Any]):
        """记录系统错误到数据库"""
        try:
            with db_manager.transaction() as conn:
                write_audit_log(conn, "system_error", error_details)
        except Exception as e:
            # 数据库不可用时只保留运行日志
            logger.error("system_error_log_failed", error=str(e), original=error_details["message"])


async def application_error_handler(request: Request, exc: BaseApplicationError) -> JSONResponse:
    """应用异常处理中间件"""
    return ErrorHandler.handle_application_error(exc).to_json_response()


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """HTTP异常处理中间件"""
    return ErrorHandler.handle_http_exception(exc).to_json_response()


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """验证异常处理中间件"""
    return ErrorHandler.handle_validation_error(exc).to_json_response()


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """通用异常处理中间件"""
    return ErrorHandler.handle_unknown_error(exc).to_json_response()
