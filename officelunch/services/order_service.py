"""
订单服务模块
提供订单相关的核心业务逻辑，包括创建、查询和状态流转

主要功能：
- 下单前置校验（资料完整、单一餐厅、配送资格、支付确认）
- 服务端重新读取菜单并重新计价，不信任客户端快照
- 订单与明细在同一事务中写入，任一步失败整体回滚
- 按角色范围查询订单
- 订单状态流转（单个与批量）

业务规则：
- 订单号由数据库序列分配，单调且唯一
- 同一支付意向只能对应一个订单，同一顾客重复提交返回已有订单
- 状态只能前进不能回退，终态（已送达、已取消）不可再变更
"""

from typing import Any, Dict, Iterable, List, Optional

from ..core.audit import write_audit_log
from ..core.authorization import Action, Resource, authorize, require_capability
from ..core.database import db_manager, row_as_dict
from ..core.exceptions import (
    InvalidStatusTransitionError,
    MultiRestaurantCartError,
    NotFoundError,
    PartialFailureError,
    PaymentNotConfirmedError,
    ProfileIncompleteError,
    StateConflictError,
    TotalsMismatchError,
    ValidationError,
)
from ..core.logging import logger
from ..core.money import from_cents, to_cents
from ..models.cart import CartLine
from ..models.order import Order, OrderItem, OrderStatus, can_transition
from ..models.restaurant import Restaurant
from ..models.user import Role, User
from ..schemas.order import OrderCreateRequest
from .cart_service import CartStore, cart_service
from .eligibility import ensure_eligible
from .location_service import location_service
from .payment_service import payment_service
from .pricing import compute_totals
from .restaurant_service import restaurant_service

ORDER_COLUMNS = (
    "order_id, order_number, customer_id, restaurant_id, status, subtotal_cents, delivery_fee_cents, "
    "service_fee_cents, tax_cents, total_cents, delivery_location, delivery_building_id, delivery_day, "
    "payment_intent_id, created_at, updated_at"
)

_MONEY_FIELDS = ("subtotal", "delivery_fee", "service_fee", "tax", "total")


def _to_order(row: Dict[str, Any], items: List[OrderItem] = None) -> Order:
    data = dict(row)
    data["id"] = data.pop("order_id")
    data.pop("payment_intent_id", None)
    for field in _MONEY_FIELDS:
        data[field] = from_cents(data.pop(f"{field}_cents"))
    data["items"] = items or []
    return Order(**data)


def _to_item(row: Dict[str, Any]) -> OrderItem:
    data = dict(row)
    data["price"] = from_cents(data.pop("price_cents"))
    return OrderItem(**data)


class OrderService:
    """订单服务类，封装所有订单相关的业务逻辑"""

    def __init__(self):
        self.db = db_manager

    # ---- 下单 ----

    def create_order(
        self,
        actor: User,
        data: OrderCreateRequest,
        cart_store: Optional[CartStore] = None,
        cart_session_id: Optional[str] = None,
    ) -> Order:
        """
        创建订单

        Args:
            actor: 下单顾客
            data: 下单请求（购物车行只取商品ID和数量，其余信息从数据库重新读取）
            cart_store: 下单成功后需要清空的购物车存储
            cart_session_id: 对应的购物车会话

        Returns:
            Order: 含订单号和明细的订单

        Raises:
            ProfileIncompleteError: 姓名或手机号为空
            ItemUnavailableError: 商品已下架或不存在
            MultiRestaurantCartError: 购物车跨餐厅或与所选餐厅不一致
            SelectionIncompleteError / IneligibleItemsError: 配送资格不满足
            TotalsMismatchError: 客户端金额与服务端计算不一致
            PaymentNotConfirmedError: 支付未确认或金额不符
            PersistenceError: 数据库重试耗尽，此时不存在部分写入的订单
        """
        authorize(actor, Resource.ORDER, Action.CREATE, owner_id=actor.id)

        if not actor.profile_complete:
            raise ProfileIncompleteError(actor.missing_profile_fields)
        if not data.items:
            raise ValidationError("购物车为空")

        lines = cart_service.build_cart_lines(data.items)
        restaurant_ids = {line.restaurant_id for line in lines}
        if len(restaurant_ids) > 1 or restaurant_ids != {data.restaurant_id}:
            raise MultiRestaurantCartError(restaurant_ids | {data.restaurant_id})
        restaurant = restaurant_service.get_restaurant_or_404(data.restaurant_id)

        ensure_eligible(lines, data.delivery_day, data.delivery_building_id)
        location_name = self._delivery_location_name(restaurant, data.delivery_building_id)

        totals = compute_totals(lines, restaurant.delivery_fee)
        if data.totals is not None and data.totals.total != totals.total:
            raise TotalsMismatchError(
                "订单金额已变化，请刷新后重新确认",
                details={"expected_total": str(totals.total), "submitted_total": str(data.totals.total)},
            )

        if data.payment_intent_id:
            existing = self._find_by_payment_intent(data.payment_intent_id)
            if existing is not None:
                return self._replay(actor, existing)

        payment_service.verify_payment(data.payment_intent_id, totals.total, customer_id=actor.id)

        delivery_day = data.delivery_day.value if hasattr(data.delivery_day, "value") else str(data.delivery_day)

        def work(conn):
            duplicate = row_as_dict(
                conn, "SELECT order_id FROM orders WHERE payment_intent_id = ?", [data.payment_intent_id]
            )
            if duplicate:
                return duplicate["order_id"]

            row = row_as_dict(
                conn,
                """
                INSERT INTO orders(customer_id, restaurant_id, status, subtotal_cents, delivery_fee_cents,
                                   service_fee_cents, tax_cents, total_cents, delivery_location,
                                   delivery_building_id, delivery_day, payment_intent_id)
                VALUES (?,?,?,?,?,?,?,?,?,?,?,?)
                RETURNING order_id, order_number
                """,
                [actor.id, restaurant.id, OrderStatus.PENDING.value,
                 to_cents(totals.subtotal), to_cents(totals.delivery_fee), to_cents(totals.service_fee),
                 to_cents(totals.tax), to_cents(totals.total), location_name,
                 data.delivery_building_id, delivery_day, data.payment_intent_id],
            )
            self._insert_items(conn, row["order_id"], lines)
            write_audit_log(
                conn,
                "order_create",
                {
                    "order_id": row["order_id"],
                    "order_number": row["order_number"],
                    "restaurant_id": restaurant.id,
                    "total": str(totals.total),
                    "payment_intent_id": data.payment_intent_id,
                },
                user_id=actor.id,
                actor_id=actor.id,
            )
            return row["order_id"]

        order_id = self.db.run_in_transaction(work)
        order = self._load_order(order_id)
        if order.customer_id != actor.id:
            raise PaymentNotConfirmedError("该支付已用于其他订单")

        logger.info(
            "order_created",
            order_id=order.id,
            order_number=order.order_number,
            customer_id=actor.id,
            restaurant_id=order.restaurant_id,
            total=str(order.total),
            item_count=len(order.items),
        )

        if cart_store is not None and cart_session_id:
            cart_store.clear(cart_session_id, actor.id)
        return order

    def _insert_items(self, conn, order_id: int, lines: List[CartLine]):
        for line in lines:
            conn.execute(
                "INSERT INTO order_items(order_id, lunchbox_id, name, quantity, price_cents) VALUES (?,?,?,?,?)",
                [order_id, line.lunchbox_id, line.name, line.quantity, to_cents(line.unit_price)],
            )

    def _delivery_location_name(self, restaurant: Restaurant, building_id: int) -> str:
        """配送楼宇必须启用，且位于餐厅服务的配送地点内；返回地点名称作为快照"""
        building = location_service.get_building(building_id)
        if building is None or not building.is_active:
            raise StateConflictError(
                "配送楼宇不存在或已停用",
                error_code="BUILDING_OUT_OF_RANGE",
                details={"delivery_building_id": building_id},
            )
        if (restaurant.delivery_location_id is not None
                and building.delivery_location_id != restaurant.delivery_location_id):
            raise StateConflictError(
                "所选楼宇不在该餐厅的配送范围内",
                error_code="BUILDING_OUT_OF_RANGE",
                details={"delivery_building_id": building_id, "restaurant_id": restaurant.id},
            )
        location = location_service.get_location(building.delivery_location_id)
        if location is None or not location.is_active:
            raise StateConflictError(
                "配送地点已停用",
                error_code="BUILDING_OUT_OF_RANGE",
                details={"delivery_location_id": building.delivery_location_id},
            )
        return location.name

    def _find_by_payment_intent(self, payment_intent_id: str) -> Optional[Order]:
        row = self.db.fetch_one(
            f"SELECT {ORDER_COLUMNS} FROM orders WHERE payment_intent_id = ?", [payment_intent_id]
        )
        if not row:
            return None
        return self._with_items([_to_order(row)])[0]

    def _replay(self, actor: User, existing: Order) -> Order:
        """重复提交同一支付意向：本人返回已有订单，他人视为支付无效"""
        if existing.customer_id != actor.id:
            raise PaymentNotConfirmedError("该支付已用于其他订单")
        logger.info("order_create_replayed", order_id=existing.id, customer_id=actor.id)
        return existing

    # ---- 查询 ----

    def _with_items(self, orders: List[Order]) -> List[Order]:
        if not orders:
            return orders
        ids = [order.id for order in orders]
        placeholders = ", ".join("?" for _ in ids)
        rows = self.db.fetch_all(
            f"SELECT id, order_id, lunchbox_id, name, quantity, price_cents FROM order_items "
            f"WHERE order_id IN ({placeholders}) ORDER BY id",
            ids,
        )
        grouped: Dict[int, List[OrderItem]] = {}
        for row in rows:
            grouped.setdefault(row["order_id"], []).append(_to_item(row))
        for order in orders:
            order.items = grouped.get(order.id, [])
        return orders

    def _load_orders(self, order_ids: Iterable[int]) -> Dict[int, Order]:
        ids = sorted(set(order_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = self.db.fetch_all(
            f"SELECT {ORDER_COLUMNS} FROM orders WHERE order_id IN ({placeholders})", ids
        )
        orders = self._with_items([_to_order(row) for row in rows])
        return {order.id: order for order in orders}

    def _load_order(self, order_id: int) -> Optional[Order]:
        return self._load_orders([order_id]).get(order_id)

    def _owner_for(self, actor: User, order: Order, owners: Dict[int, Optional[int]] = None) -> Optional[int]:
        """订单在当前角色视角下的归属用户：顾客看下单人，店主看餐厅店主"""
        role = Role(actor.role)
        if role == Role.CUSTOMER:
            return order.customer_id
        if role == Role.RESTAURANT_OWNER:
            if owners is not None and order.restaurant_id in owners:
                return owners[order.restaurant_id]
            restaurant = restaurant_service.get_restaurant(order.restaurant_id)
            owner_id = restaurant.owner_id if restaurant else None
            if owners is not None:
                owners[order.restaurant_id] = owner_id
            return owner_id
        return None

    def get_order(self, actor: User, order_id: int) -> Order:
        """
        获取单个订单

        顾客访问不存在或他人的订单统一返回无权限，不暴露订单是否存在；
        店主和管理员访问不存在的订单返回 404
        """
        require_capability(actor, Resource.ORDER, Action.READ)
        order = self._load_order(order_id)
        if order is None:
            if Role(actor.role) == Role.CUSTOMER:
                authorize(actor, Resource.ORDER, Action.READ, owner_id=None)
            raise NotFoundError("订单", order_id)
        authorize(actor, Resource.ORDER, Action.READ, owner_id=self._owner_for(actor, order))
        return order

    def get_order_items(self, actor: User, order_id: int) -> List[OrderItem]:
        return self.get_order(actor, order_id).items

    def list_orders(self, actor: User, status: Optional[OrderStatus] = None) -> List[Order]:
        """按角色范围列出订单：顾客看自己的，店主看自己餐厅的，管理员看全部"""
        require_capability(actor, Resource.ORDER, Action.READ)
        role = Role(actor.role)

        conditions = []
        params: List[Any] = []
        if role == Role.CUSTOMER:
            conditions.append("customer_id = ?")
            params.append(actor.id)
        elif role == Role.RESTAURANT_OWNER:
            conditions.append("restaurant_id IN (SELECT id FROM restaurants WHERE owner_id = ?)")
            params.append(actor.id)
        if status is not None:
            conditions.append("status = ?")
            params.append(OrderStatus(status).value)

        query = f"SELECT {ORDER_COLUMNS} FROM orders"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY created_at DESC, order_id DESC"
        return self._with_items([_to_order(row) for row in self.db.fetch_all(query, params)])

    # ---- 状态流转 ----

    def _transition(self, actor: User, order: Order, target: OrderStatus) -> bool:
        """执行一次状态变更，返回是否实际发生变更；状态相同视为无操作"""
        current = OrderStatus(order.status)
        target = OrderStatus(target)
        if current == target:
            return False
        if not can_transition(current, target):
            raise InvalidStatusTransitionError(current.value, target.value)

        def work(conn):
            row = row_as_dict(
                conn,
                "UPDATE orders SET status = ?, updated_at = now() WHERE order_id = ? AND status = ? RETURNING order_id",
                [target.value, order.id, current.value],
            )
            if row is None:
                # 读取后被并发修改
                raise InvalidStatusTransitionError(current.value, target.value)
            write_audit_log(
                conn,
                "order_status_update",
                {"order_id": order.id, "from": current.value, "to": target.value},
                user_id=order.customer_id,
                actor_id=actor.id,
            )

        self.db.run_in_transaction(work)
        logger.info(
            "order_status_changed",
            order_id=order.id,
            order_number=order.order_number,
            from_status=current.value,
            to_status=target.value,
            actor_id=actor.id,
        )
        return True

    def update_status(self, actor: User, order_id: int, status: OrderStatus) -> Order:
        """更新单个订单状态（店主限本餐厅订单，管理员不限）"""
        require_capability(actor, Resource.ORDER, Action.UPDATE_STATUS)
        order = self._load_order(order_id)
        if order is None:
            raise NotFoundError("订单", order_id)
        authorize(actor, Resource.ORDER, Action.UPDATE_STATUS, owner_id=self._owner_for(actor, order))

        self._transition(actor, order, status)
        return self._load_order(order_id)

    def bulk_update_status(self, actor: User, order_ids: List[int], status: OrderStatus) -> int:
        """
        批量更新订单状态

        先整体校验存在性和归属，任何一个不满足则不做任何修改；
        之后每个订单单独在事务中变更，非法流转的订单汇总为 PartialFailureError。

        Returns:
            int: 实际发生变更的订单数
        """
        require_capability(actor, Resource.ORDER, Action.UPDATE_STATUS)
        ids = list(dict.fromkeys(order_ids))
        orders = self._load_orders(ids)

        missing = [order_id for order_id in ids if order_id not in orders]
        if missing:
            raise NotFoundError("订单", missing)

        owners: Dict[int, Optional[int]] = {}
        for order_id in ids:
            authorize(
                actor, Resource.ORDER, Action.UPDATE_STATUS,
                owner_id=self._owner_for(actor, orders[order_id], owners),
            )

        updated = 0
        failed = []
        for order_id in ids:
            try:
                if self._transition(actor, orders[order_id], status):
                    updated += 1
            except InvalidStatusTransitionError as e:
                failed.append({"order_id": order_id, **e.details})

        if failed:
            raise PartialFailureError(
                f"{len(failed)} 个订单状态更新失败",
                details={"updated": updated, "failed": failed},
            )
        return updated


# 全局服务实例
order_service = OrderService()
