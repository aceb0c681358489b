from decimal import Decimal
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # 数据库配置
    database_url: str = "duckdb://./data/officelunch.duckdb"
    db_retry_attempts: int = 3
    db_retry_base_delay: float = 1.0  # 秒，按 2^n 指数退避

    # JWT配置
    jwt_secret_key: str = "your-secret-key"
    jwt_algorithm: str = "HS256"
    jwt_expire_hours: int = 24 * 7  # 7天

    # 支付配置（未配置 Stripe 密钥时使用本地模拟支付）
    stripe_secret_key: Optional[str] = None
    currency: str = "usd"

    # 费用配置
    service_fee: Decimal = Decimal("1.50")
    tax_rate: Decimal = Decimal("0.10")

    # 购物车：是否在加入购物车时就拒绝跨餐厅商品
    enforce_single_restaurant_on_add: bool = False
    # 购物车会话上限与空闲过期时间（秒）
    cart_max_sessions: int = 10000
    cart_session_idle_seconds: float = 24 * 3600

    # API配置
    api_title: str = "Office Lunch API"
    api_version: str = "1.0.0"
    api_prefix: str = "/api/v1"

    # 服务监听
    host: str = "127.0.0.1"
    port: int = 8000

    # 开发模式
    debug: bool = False
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = "OFFICELUNCH_"
        case_sensitive = False


# 全局设置实例
settings = Settings()
