"""
餐厅服务
管理员可维护任意餐厅；店主只能创建和修改自己名下的餐厅
"""

from typing import Any, Dict, List, Optional

from ..core.audit import write_audit_log
from ..core.authorization import Action, Resource, authorize, require_capability
from ..core.database import db_manager, row_as_dict
from ..core.exceptions import NotFoundError, StateConflictError, ValidationError
from ..core.money import from_cents, to_cents
from ..models.restaurant import Restaurant
from ..models.user import Role, User
from ..schemas.restaurant import RestaurantCreateRequest, RestaurantUpdateRequest

RESTAURANT_COLUMNS = (
    "id, name, description, cuisine, image_url, rating, delivery_time, delivery_fee_cents, "
    "delivery_location_id, is_active, owner_id, created_at, updated_at"
)


def _to_restaurant(row: Dict[str, Any]) -> Restaurant:
    data = dict(row)
    data["delivery_fee"] = from_cents(data.pop("delivery_fee_cents"))
    return Restaurant(**data)


class RestaurantService:
    """餐厅服务"""

    def __init__(self):
        self.db = db_manager

    def list_restaurants(self) -> List[Restaurant]:
        """营业中的餐厅"""
        rows = self.db.fetch_all(
            f"SELECT {RESTAURANT_COLUMNS} FROM restaurants WHERE is_active ORDER BY name"
        )
        return [_to_restaurant(row) for row in rows]

    def get_restaurant(self, restaurant_id: int) -> Optional[Restaurant]:
        row = self.db.fetch_one(
            f"SELECT {RESTAURANT_COLUMNS} FROM restaurants WHERE id = ?", [restaurant_id]
        )
        return _to_restaurant(row) if row else None

    def get_restaurant_or_404(self, restaurant_id: int) -> Restaurant:
        restaurant = self.get_restaurant(restaurant_id)
        if restaurant is None:
            raise NotFoundError("餐厅", restaurant_id)
        return restaurant

    def get_by_owner(self, owner_id: int) -> Optional[Restaurant]:
        row = self.db.fetch_one(
            f"SELECT {RESTAURANT_COLUMNS} FROM restaurants WHERE owner_id = ? ORDER BY id LIMIT 1",
            [owner_id],
        )
        return _to_restaurant(row) if row else None

    def _check_location(self, location_id: Optional[int]):
        if location_id is None:
            return
        if not self.db.fetch_one("SELECT id FROM delivery_locations WHERE id = ?", [location_id]):
            raise ValidationError("配送地点不存在", details={"delivery_location_id": location_id})

    def _check_owner(self, owner_id: Optional[int]):
        if owner_id is None:
            return
        row = self.db.fetch_one("SELECT role FROM users WHERE id = ?", [owner_id])
        if not row or row["role"] != Role.RESTAURANT_OWNER.value:
            raise ValidationError("店主账户不存在或不是店主角色", details={"owner_id": owner_id})

    def create_restaurant(self, actor: User, data: RestaurantCreateRequest) -> Restaurant:
        """
        创建餐厅

        店主只能为自己创建且只能拥有一家餐厅；管理员可指定任意店主或不指定
        """
        owner_id = data.owner_id
        if Role(actor.role) == Role.RESTAURANT_OWNER and owner_id is None:
            owner_id = actor.id
        authorize(actor, Resource.RESTAURANT, Action.CREATE, owner_id=owner_id)

        self._check_owner(owner_id)
        self._check_location(data.delivery_location_id)
        if owner_id is not None and self.get_by_owner(owner_id) is not None:
            raise StateConflictError(
                "该店主已拥有餐厅", error_code="RESTAURANT_ALREADY_EXISTS", details={"owner_id": owner_id}
            )

        def work(conn):
            row = row_as_dict(
                conn,
                f"""
                INSERT INTO restaurants(name, description, cuisine, image_url, delivery_time,
                                        delivery_fee_cents, delivery_location_id, is_active, owner_id)
                VALUES (?,?,?,?,?,?,?,?,?)
                RETURNING {RESTAURANT_COLUMNS}
                """,
                [data.name, data.description, data.cuisine, data.image_url, data.delivery_time,
                 to_cents(data.delivery_fee), data.delivery_location_id, data.is_active, owner_id],
            )
            write_audit_log(
                conn, "restaurant_create", {"restaurant_id": row["id"], "name": data.name},
                user_id=owner_id, actor_id=actor.id,
            )
            return row

        return _to_restaurant(self.db.run_in_transaction(work))

    def update_restaurant(self, actor: User, restaurant_id: int, data: RestaurantUpdateRequest) -> Restaurant:
        """更新餐厅，修改前重新校验归属"""
        require_capability(actor, Resource.RESTAURANT, Action.UPDATE)
        restaurant = self.get_restaurant_or_404(restaurant_id)
        authorize(actor, Resource.RESTAURANT, Action.UPDATE, owner_id=restaurant.owner_id)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "owner_id" in changes:
            # 新店主也必须在当前用户的权限范围内，店主只能“转给”自己
            authorize(actor, Resource.RESTAURANT, Action.UPDATE, owner_id=changes["owner_id"])
            self._check_owner(changes["owner_id"])
        if "delivery_location_id" in changes:
            self._check_location(changes["delivery_location_id"])
        if "delivery_fee" in changes:
            changes["delivery_fee_cents"] = to_cents(changes.pop("delivery_fee"))
        if not changes:
            return restaurant

        assignments = ", ".join(f"{field} = ?" for field in changes)

        def work(conn):
            row = row_as_dict(
                conn,
                f"UPDATE restaurants SET {assignments}, updated_at = now() WHERE id = ? RETURNING {RESTAURANT_COLUMNS}",
                [*changes.values(), restaurant_id],
            )
            write_audit_log(
                conn, "restaurant_update", {"restaurant_id": restaurant_id, "changes": changes},
                user_id=restaurant.owner_id, actor_id=actor.id,
            )
            return row

        return _to_restaurant(self.db.run_in_transaction(work))

    def delete_restaurant(self, actor: User, restaurant_id: int) -> None:
        """删除餐厅及其菜单（历史订单保留快照）"""
        require_capability(actor, Resource.RESTAURANT, Action.DELETE)
        restaurant = self.get_restaurant_or_404(restaurant_id)
        authorize(actor, Resource.RESTAURANT, Action.DELETE, owner_id=restaurant.owner_id)

        def work(conn):
            conn.execute("DELETE FROM lunchboxes WHERE restaurant_id = ?", [restaurant_id])
            conn.execute("DELETE FROM restaurants WHERE id = ?", [restaurant_id])
            write_audit_log(conn, "restaurant_delete", {"restaurant_id": restaurant_id}, actor_id=actor.id)

        self.db.run_in_transaction(work)


# 全局服务实例
restaurant_service = RestaurantService()
