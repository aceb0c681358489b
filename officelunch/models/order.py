"""
订单相关数据模型
"""

from decimal import Decimal
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Dict, List, Optional, Set
from enum import Enum
from .base import BaseEntity, TimestampMixin


class OrderStatus(str, Enum):
    """订单状态枚举"""
    PENDING = "pending"                    # 待确认
    CONFIRMED = "confirmed"                # 已确认
    PREPARING = "preparing"                # 制作中
    READY = "ready"                        # 待取餐
    OUT_FOR_DELIVERY = "out_for_delivery"  # 配送中
    DELIVERED = "delivered"                # 已送达
    CANCELLED = "cancelled"                # 已取消


# 正向流转顺序，只能前进不能回退
STATUS_SEQUENCE: List[OrderStatus] = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
]

TERMINAL_STATUSES: Set[OrderStatus] = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}


def allowed_transitions(current: OrderStatus) -> Set[OrderStatus]:
    """当前状态可以流转到的目标状态"""
    current = OrderStatus(current)
    if current in TERMINAL_STATUSES:
        return set()
    rank = STATUS_SEQUENCE.index(current)
    return set(STATUS_SEQUENCE[rank + 1:]) | {OrderStatus.CANCELLED}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return OrderStatus(target) in allowed_transitions(current)


TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {s: allowed_transitions(s) for s in OrderStatus}


class OrderItem(BaseEntity):
    """订单明细，创建后不可修改"""
    id: int = Field(..., description="明细ID")
    order_id: int = Field(..., description="订单ID")
    lunchbox_id: int = Field(..., description="午餐盒ID")
    name: Optional[str] = Field(None, description="商品名称快照")
    quantity: int = Field(..., ge=1, description="数量")
    price: Decimal = Field(..., description="下单时单价快照")


class Order(BaseEntity, TimestampMixin):
    """订单完整模型，金额在创建时计算并冻结"""
    id: int = Field(..., description="订单ID")
    order_number: int = Field(..., description="订单号")
    customer_id: int = Field(..., description="下单用户")
    restaurant_id: int = Field(..., description="餐厅")
    status: OrderStatus = Field(..., description="订单状态")
    subtotal: Decimal = Field(..., description="商品小计")
    delivery_fee: Decimal = Field(..., description="配送费")
    service_fee: Decimal = Field(..., description="服务费")
    tax: Decimal = Field(..., description="税费")
    total: Decimal = Field(..., description="合计")
    delivery_location: str = Field(..., description="配送地点名称快照")
    delivery_building_id: int = Field(..., description="配送楼宇")
    delivery_day: str = Field(..., description="配送日")
    items: List[OrderItem] = Field(default_factory=list, description="订单明细")


class OrderTotals(BaseModel):
    """订单金额明细"""
    subtotal: Decimal = Field(..., description="商品小计")
    delivery_fee: Decimal = Field(..., description="配送费")
    service_fee: Decimal = Field(..., description="服务费")
    tax: Decimal = Field(..., description="税费")
    total: Decimal = Field(..., description="合计")
