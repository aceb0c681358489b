"""
购物车相关的请求/响应模式
"""

from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field

from ..models.cart import CartLine
from ..models.order import OrderTotals


class CartAddRequest(BaseModel):
    lunchbox_id: int = Field(..., description="午餐盒ID")


class CartQuantityRequest(BaseModel):
    """数量小于等于0时移除该行"""
    quantity: int = Field(..., description="数量")


class CartResponse(BaseModel):
    lines: List[CartLine] = Field(default_factory=list)
    item_count: int = 0
    restaurant_ids: List[int] = Field(default_factory=list)
    single_restaurant: bool = True
    delivery_fee: Decimal = Decimal("0.00")
    totals: Optional[OrderTotals] = None
