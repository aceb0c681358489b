"""
计价引擎
纯函数：根据购物车内容和餐厅配送费计算小计、服务费、税费和合计

规则：
- 小计 = Σ(单价 × 数量)，全程使用 Decimal，不经过浮点
- 服务费为固定值
- 税费只对小计计征，不含配送费和服务费，四舍五入到分
- 合计 = 小计 + 配送费 + 服务费 + 税费
"""

from decimal import Decimal
from typing import Iterable, Optional

from ..config.settings import settings
from ..core.exceptions import ValidationError
from ..core.money import quantize, to_decimal
from ..models.order import OrderTotals


def compute_subtotal(lines: Iterable) -> Decimal:
    """计算商品小计，lines 中每项需有 unit_price 与 quantity"""
    subtotal = Decimal("0")
    for line in lines:
        quantity = int(line.quantity)
        if quantity < 1:
            raise ValidationError("商品数量必须大于0", details={"quantity": quantity})
        subtotal += to_decimal(line.unit_price) * quantity
    return quantize(subtotal)


def compute_totals(
    lines: Iterable,
    delivery_fee,
    service_fee: Optional[Decimal] = None,
    tax_rate: Optional[Decimal] = None,
) -> OrderTotals:
    """计算订单金额明细，无副作用，可重复调用用于展示"""
    service_fee = settings.service_fee if service_fee is None else service_fee
    tax_rate = settings.tax_rate if tax_rate is None else tax_rate

    subtotal = compute_subtotal(lines)
    delivery_fee = quantize(to_decimal(delivery_fee))
    service_fee = quantize(to_decimal(service_fee))
    tax = quantize(subtotal * to_decimal(tax_rate))
    total = subtotal + delivery_fee + service_fee + tax

    return OrderTotals(
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        service_fee=service_fee,
        tax=tax,
        total=total,
    )
