"""
办公楼午餐配送平台后端服务 - 主应用入口

主要功能模块：
- 餐厅、菜单与配送地点管理
- 购物车与结账（计价、配送资格、支付意向）
- 订单创建与状态流转
- 基于角色的权限控制
- 操作日志记录

技术栈：FastAPI + DuckDB + JWT认证 + Stripe
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import api_router
from .config.settings import settings
from .core.database import db_manager
from .core.error_handler import (
    application_error_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from .core.exceptions import BaseApplicationError
from .core.logging import configure_logging, logger
from .services.cart_service import CartStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    try:
        db_manager.init_database()
        logger.info("database_initialized", db_path=db_manager.db_path)
    except Exception as e:
        # 不让应用启动失败，数据库调用会在运行时重试
        logger.error("database_initialization_failed", error=str(e))

    yield

    db_manager.close()


def create_app() -> FastAPI:
    """创建FastAPI应用"""
    configure_logging(settings.log_level, settings.debug)

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="办公楼午餐配送平台API",
        debug=settings.debug,
        lifespan=lifespan,
    )

    # 购物车会话按应用隔离，不使用进程级全局变量
    app.state.cart_store = CartStore()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 注册异常处理器
    app.add_exception_handler(BaseApplicationError, application_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    def health_check():
        try:
            db_manager.fetch_one("SELECT 1 AS ok")
            return {"status": "healthy", "version": settings.api_version, "database": "connected"}
        except Exception as e:
            return {"status": "unhealthy", "version": settings.api_version, "database": f"error: {e}"}

    @app.get("/")
    def root():
        return {
            "name": settings.api_title,
            "version": settings.api_version,
            "description": "办公楼午餐配送平台API",
        }

    return app


# 应用实例
app = create_app()
