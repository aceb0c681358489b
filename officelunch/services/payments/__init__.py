"""
支付网关
配置了 Stripe 密钥时 get_gateway 返回 StripeGateway，否则返回进程内的 FakeGateway；
测试通过 set_gateway 替换实现
"""

from typing import Optional

from ...config.settings import settings
from .fake_adapter import FakeGateway
from .port import PaymentGateway, PaymentIntent, PaymentIntentNotFound
from .stripe_adapter import StripeGateway

_current_gateway: Optional[PaymentGateway] = None


def get_gateway() -> PaymentGateway:
    """获取当前支付网关，首次调用时按配置创建"""
    global _current_gateway
    if _current_gateway is None:
        if settings.stripe_secret_key:
            _current_gateway = StripeGateway(settings.stripe_secret_key)
        else:
            _current_gateway = FakeGateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """替换当前支付网关"""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """恢复为按配置创建的默认网关"""
    global _current_gateway
    _current_gateway = None


__all__ = [
    "FakeGateway",
    "PaymentGateway",
    "PaymentIntent",
    "PaymentIntentNotFound",
    "StripeGateway",
    "get_gateway",
    "set_gateway",
    "reset_gateway",
]
