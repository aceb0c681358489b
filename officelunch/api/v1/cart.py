"""
购物车路由模块
客户端通过 X-Cart-Session 请求头标识自己的购物车会话
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from ...core.exceptions import ValidationError
from ...core.security import get_optional_user
from ...models.order import OrderTotals
from ...models.user import User
from ...schemas.cart import CartAddRequest, CartQuantityRequest, CartResponse
from ...schemas.common import pick_responses
from ...services.cart_service import CartSession, CartStore, cart_service

router = APIRouter()


def get_cart_store(request: Request) -> CartStore:
    return request.app.state.cart_store


def get_cart_session(
    x_cart_session: Optional[str] = Header(default=None),
    user: Optional[User] = Depends(get_optional_user),
    store: CartStore = Depends(get_cart_store),
) -> CartSession:
    """取出当前会话的购物车并绑定当前身份（身份变化时自动清空）"""
    if not x_cart_session or not x_cart_session.strip():
        raise ValidationError("缺少 X-Cart-Session 请求头")
    return store.session(x_cart_session.strip(), user.id if user else None)


@router.get("", response_model=CartResponse)
def view_cart(session: CartSession = Depends(get_cart_session)):
    return cart_service.to_response(session.cart)


@router.post("/items", response_model=CartResponse, responses=pick_responses(409))
def add_cart_item(req: CartAddRequest, session: CartSession = Depends(get_cart_session)):
    """加入商品，已在购物车中则数量加一"""
    cart_service.add_item(session.cart, req.lunchbox_id)
    return cart_service.to_response(session.cart)


@router.patch("/items/{lunchbox_id}", response_model=CartResponse)
def set_cart_item_quantity(
    lunchbox_id: int,
    req: CartQuantityRequest,
    session: CartSession = Depends(get_cart_session),
):
    """设置数量，小于等于0时移除"""
    session.cart.update_quantity(lunchbox_id, req.quantity)
    return cart_service.to_response(session.cart)


@router.delete("/items/{lunchbox_id}", response_model=CartResponse)
def remove_cart_item(lunchbox_id: int, session: CartSession = Depends(get_cart_session)):
    session.cart.remove_item(lunchbox_id)
    return cart_service.to_response(session.cart)


@router.delete("", response_model=CartResponse)
def clear_cart(
    session: CartSession = Depends(get_cart_session),
    store: CartStore = Depends(get_cart_store),
):
    """清空购物车并释放会话"""
    session.cart.clear()
    store.discard(session.session_id)
    return cart_service.to_response(session.cart)


@router.get("/totals", response_model=OrderTotals)
def cart_totals(session: CartSession = Depends(get_cart_session)):
    return cart_service.totals(session.cart)
