"""
购物车服务

购物车按客户端会话（X-Cart-Session）隔离，保存在应用级的 CartStore 中。
每个会话绑定使用它的身份，身份变化（包括匿名与登录之间切换）时清空购物车，
避免商品在账户之间泄漏。

商品信息在加入时快照，但下单时一律以 build_cart_lines 从数据库重新读取为准。
"""

import threading
import time
from collections import OrderedDict
from typing import Callable, Dict, Iterable, List, Optional

from ..config.settings import settings
from ..core.exceptions import ItemUnavailableError, NotFoundError
from ..core.logging import logger
from ..models.cart import Cart, CartLine
from ..models.order import OrderTotals
from ..models.restaurant import Restaurant
from ..schemas.cart import CartResponse
from ..schemas.checkout import CartItemRequest
from .lunchbox_service import lunchbox_service
from .pricing import compute_totals
from .restaurant_service import restaurant_service

_UNBOUND = object()


class CartSession:
    """单个客户端会话的购物车，绑定到当前使用者的用户ID（匿名为 None）"""

    def __init__(self, session_id: str, enforce_single_restaurant: bool = False):
        self.session_id = session_id
        self.cart = Cart(enforce_single_restaurant=enforce_single_restaurant)
        self._identity = _UNBOUND
        self.last_seen = 0.0

    @property
    def identity(self) -> Optional[int]:
        return None if self._identity is _UNBOUND else self._identity

    def bind(self, user_id: Optional[int]) -> bool:
        """绑定身份，身份与上次不同则清空购物车；返回是否发生清空"""
        cleared = False
        if self._identity is not _UNBOUND and self._identity != user_id:
            if not self.cart.is_empty:
                cleared = True
                logger.info(
                    "cart_cleared_on_identity_change",
                    session_id=self.session_id,
                    previous_user_id=self._identity,
                    user_id=user_id,
                )
            self.cart.clear()
        self._identity = user_id
        return cleared


class CartStore:
    """
    应用级的购物车会话存储，挂在 app.state 上

    会话按最近访问顺序保存：超过 idle_seconds 未访问的会话在下次访问存储时淘汰，
    会话数超过 max_sessions 时淘汰最久未访问的会话。
    """

    def __init__(
        self,
        enforce_single_restaurant: Optional[bool] = None,
        max_sessions: Optional[int] = None,
        idle_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if enforce_single_restaurant is None:
            enforce_single_restaurant = settings.enforce_single_restaurant_on_add
        self.enforce_single_restaurant = enforce_single_restaurant
        self.max_sessions = max_sessions if max_sessions is not None else settings.cart_max_sessions
        self.idle_seconds = idle_seconds if idle_seconds is not None else settings.cart_session_idle_seconds
        self._clock = clock
        self._sessions: "OrderedDict[str, CartSession]" = OrderedDict()
        self._lock = threading.Lock()

    def _evict(self, now: float) -> None:
        """淘汰过期会话，并把会话数压到上限以内；调用方持有锁"""
        expired = 0
        while self._sessions:
            session = next(iter(self._sessions.values()))
            if now - session.last_seen < self.idle_seconds:
                break
            self._sessions.popitem(last=False)
            expired += 1
        overflow = 0
        while len(self._sessions) > self.max_sessions:
            self._sessions.popitem(last=False)
            overflow += 1
        if expired or overflow:
            logger.info(
                "cart_sessions_evicted",
                expired=expired,
                overflow=overflow,
                remaining=len(self._sessions),
            )

    def session(self, session_id: str, user_id: Optional[int] = None) -> CartSession:
        """获取（不存在则创建）会话并绑定当前身份"""
        with self._lock:
            now = self._clock()
            self._evict(now)
            session = self._sessions.get(session_id)
            if session is None:
                session = CartSession(session_id, self.enforce_single_restaurant)
                self._sessions[session_id] = session
            else:
                self._sessions.move_to_end(session_id)
            session.last_seen = now
            session.bind(user_id)
            self._evict(now)
            return session

    def clear(self, session_id: str, user_id: Optional[int] = None) -> None:
        """下单成功后移除会话；会话属于其他身份时不动"""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None and session.identity == user_id:
                session.cart.clear()
                del self._sessions[session_id]

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


class CartService:
    """购物车相关的数据库读取与计价"""

    def _restaurants(self, restaurant_ids: Iterable[int]) -> Dict[int, Restaurant]:
        restaurants = {}
        for restaurant_id in set(restaurant_ids):
            restaurant = restaurant_service.get_restaurant(restaurant_id)
            if restaurant is not None:
                restaurants[restaurant_id] = restaurant
        return restaurants

    def build_cart_lines(self, items: List[CartItemRequest]) -> List[CartLine]:
        """
        从数据库重新读取商品，组装购物车行

        同一商品出现多次时合并数量；价格、可配送日、可配送楼宇均以当前数据为准。

        Raises:
            ItemUnavailableError: 商品不存在、已下架或所属餐厅已停业
        """
        quantities: Dict[int, int] = {}
        for item in items:
            quantities[item.lunchbox_id] = quantities.get(item.lunchbox_id, 0) + item.quantity

        lunchboxes = lunchbox_service.get_many(quantities)
        restaurants = self._restaurants(lb.restaurant_id for lb in lunchboxes.values())

        unavailable = []
        lines = []
        for lunchbox_id, quantity in quantities.items():
            lunchbox = lunchboxes.get(lunchbox_id)
            restaurant = restaurants.get(lunchbox.restaurant_id) if lunchbox else None
            if lunchbox is None or not lunchbox.is_available or restaurant is None or not restaurant.is_active:
                unavailable.append(lunchbox_id)
                continue
            lines.append(CartLine.from_lunchbox(
                lunchbox, restaurant.name, restaurant.delivery_fee, quantity=quantity
            ))

        if unavailable:
            raise ItemUnavailableError(sorted(unavailable))
        return lines

    def add_item(self, cart: Cart, lunchbox_id: int) -> CartLine:
        """按商品ID加入购物车"""
        try:
            lunchbox = lunchbox_service.get_lunchbox_or_404(lunchbox_id)
        except NotFoundError:
            raise ItemUnavailableError([lunchbox_id])
        restaurant = restaurant_service.get_restaurant(lunchbox.restaurant_id)
        if not lunchbox.is_available or restaurant is None or not restaurant.is_active:
            raise ItemUnavailableError([lunchbox_id])
        return cart.add_item(lunchbox, restaurant.name, restaurant.delivery_fee)

    def totals(self, cart: Cart) -> OrderTotals:
        return compute_totals(cart.lines, cart.delivery_fee)

    def to_response(self, cart: Cart) -> CartResponse:
        return CartResponse(
            lines=cart.lines,
            item_count=cart.item_count,
            restaurant_ids=sorted(cart.restaurant_ids),
            single_restaurant=cart.is_single_restaurant,
            delivery_fee=cart.delivery_fee,
            totals=None if cart.is_empty else self.totals(cart),
        )


# 全局服务实例
cart_service = CartService()
