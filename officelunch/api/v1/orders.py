"""
订单管理路由模块
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header

from ...core.security import get_current_user
from ...models.order import Order, OrderItem, OrderStatus
from ...models.user import User
from ...schemas.common import pick_responses
from ...schemas.order import (
    BulkStatusUpdateRequest,
    BulkStatusUpdateResponse,
    OrderCreateRequest,
    OrderStatusUpdateRequest,
)
from ...services.cart_service import CartStore
from ...services.order_service import order_service
from .cart import get_cart_store

router = APIRouter()


@router.post("", response_model=Order, status_code=201, responses=pick_responses(401, 403, 409))
def create_order(
    req: OrderCreateRequest,
    user: User = Depends(get_current_user),
    store: CartStore = Depends(get_cart_store),
    x_cart_session: Optional[str] = Header(default=None),
):
    """创建订单，成功后清空当前会话的购物车"""
    return order_service.create_order(
        user, req, cart_store=store, cart_session_id=x_cart_session.strip() if x_cart_session else None
    )


@router.get("", response_model=List[Order], responses=pick_responses(401, 403))
def list_orders(status: Optional[OrderStatus] = None, user: User = Depends(get_current_user)):
    """按角色范围列出订单"""
    return order_service.list_orders(user, status=status)


# 批量接口需在 /{order_id} 之前声明
@router.patch("/bulk-status", response_model=BulkStatusUpdateResponse, responses=pick_responses(401, 403, 404, 409))
def bulk_update_order_status(req: BulkStatusUpdateRequest, user: User = Depends(get_current_user)):
    updated = order_service.bulk_update_status(user, req.order_ids, req.status)
    return BulkStatusUpdateResponse(updated=updated)


@router.get("/{order_id}", response_model=Order, responses=pick_responses(401, 403, 404))
def get_order(order_id: int, user: User = Depends(get_current_user)):
    return order_service.get_order(user, order_id)


@router.get("/{order_id}/items", response_model=List[OrderItem], responses=pick_responses(401, 403, 404))
def get_order_items(order_id: int, user: User = Depends(get_current_user)):
    return order_service.get_order_items(user, order_id)


@router.patch("/{order_id}/status", response_model=Order, responses=pick_responses(401, 403, 404, 409))
def update_order_status(order_id: int, req: OrderStatusUpdateRequest, user: User = Depends(get_current_user)):
    """店主更新本餐厅订单状态，管理员不限"""
    return order_service.update_status(user, order_id, req.status)
