"""
金额换算工具
金额在业务层使用 Decimal（两位小数），在存储和支付机构接口中使用整数分
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

from .exceptions import InvalidAmountError

CENT = Decimal("0.01")

Number = Union[Decimal, int, str]


def to_decimal(value: Number) -> Decimal:
    """转换为 Decimal，拒绝浮点数避免精度漂移"""
    if isinstance(value, float):
        raise InvalidAmountError("金额不能使用浮点数表示", details={"value": value})
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError("金额格式无效", details={"value": str(value)})


def quantize(amount: Decimal) -> Decimal:
    """四舍五入到分"""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Number) -> int:
    """
    精确换算为整数分

    超过两位小数的金额直接拒绝，不做舍入，避免授权金额与订单金额差一分。
    """
    value = to_decimal(amount)
    if not value.is_finite():
        raise InvalidAmountError("金额格式无效", details={"value": str(amount)})
    cents = value * 100
    if cents != cents.to_integral_value():
        raise InvalidAmountError(
            "金额最多保留两位小数", details={"value": str(amount)}
        )
    return int(cents)


def from_cents(cents: int) -> Decimal:
    """整数分转换为两位小数的 Decimal"""
    return (Decimal(int(cents)) / 100).quantize(CENT)
