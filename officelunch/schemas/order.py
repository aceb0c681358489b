"""
订单相关的请求/响应模式
"""

from typing import List, Optional
from pydantic import BaseModel, Field

from ..models.lunchbox import Weekday
from ..models.order import OrderStatus, OrderTotals
from .checkout import CartItemRequest


class OrderCreateRequest(BaseModel):
    """订单创建请求"""
    restaurant_id: int = Field(..., description="餐厅ID")
    items: List[CartItemRequest] = Field(..., min_length=1, description="购物车行")
    delivery_building_id: Optional[int] = Field(None, description="配送楼宇")
    delivery_day: Optional[Weekday] = Field(None, description="配送日")
    payment_intent_id: Optional[str] = Field(None, description="已确认的支付意向ID")
    totals: Optional[OrderTotals] = Field(None, description="客户端展示的金额，用于核对")


class OrderStatusUpdateRequest(BaseModel):
    """订单状态更新请求"""
    status: OrderStatus = Field(..., description="目标状态")


class BulkStatusUpdateRequest(BaseModel):
    """批量订单状态更新请求"""
    order_ids: List[int] = Field(..., min_length=1, max_length=200, description="订单ID列表")
    status: OrderStatus = Field(..., description="目标状态")


class BulkStatusUpdateResponse(BaseModel):
    """批量更新结果"""
    updated: int = Field(..., description="实际变更的订单数")
