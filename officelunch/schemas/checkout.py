"""
结账流程的请求/响应模式
"""

from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field

from ..models.location import DeliveryBuilding
from ..models.lunchbox import Weekday


class PricingLine(BaseModel):
    """计价行"""
    unit_price: Decimal = Field(..., ge=0, decimal_places=2, description="单价")
    quantity: int = Field(..., ge=1, description="数量")


class TotalsRequest(BaseModel):
    """金额计算请求"""
    items: List[PricingLine] = Field(default_factory=list, description="计价行")
    delivery_fee: Decimal = Field(..., ge=0, decimal_places=2, description="餐厅配送费")


class CartItemRequest(BaseModel):
    """客户端持有的购物车行，服务端会重新读取商品信息"""
    lunchbox_id: int = Field(..., description="午餐盒ID")
    quantity: int = Field(1, ge=1, description="数量")


class EligibilityRequest(BaseModel):
    """配送资格校验请求"""
    items: List[CartItemRequest] = Field(..., min_length=1, description="购物车行")
    delivery_day: Optional[Weekday] = Field(None, description="配送日")
    delivery_building_id: Optional[int] = Field(None, description="配送楼宇")


class AvailabilityRequest(BaseModel):
    """可选配送日与楼宇查询请求"""
    items: List[CartItemRequest] = Field(..., min_length=1, description="购物车行")


class AvailabilityResponse(BaseModel):
    """所有商品均可配送的楼宇与星期"""
    buildings: List[DeliveryBuilding] = Field(default_factory=list)
    days: List[Weekday] = Field(default_factory=list)


class PaymentIntentRequest(BaseModel):
    """支付意向创建请求（金额校验在服务层，以返回 INVALID_AMOUNT）"""
    amount: Decimal = Field(..., description="授权金额")
