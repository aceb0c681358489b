"""
午餐盒（菜单项）服务

- 顾客和匿名访客只能看到可售的午餐盒
- 店主只能维护自己餐厅的菜单，管理员可维护全部
- 新建时未指定可配送楼宇，默认为餐厅所在配送地点下全部启用的楼宇
"""

import json
from typing import Any, Dict, Iterable, List, Optional

from ..core.audit import write_audit_log
from ..core.authorization import Action, Resource, authorize, require_capability
from ..core.database import db_manager, row_as_dict
from ..core.exceptions import NotFoundError, ValidationError
from ..core.money import from_cents, to_cents
from ..models.lunchbox import Lunchbox
from ..models.restaurant import Restaurant
from ..models.user import Role, User
from ..schemas.lunchbox import LunchboxCreateRequest, LunchboxUpdateRequest
from .restaurant_service import restaurant_service

LUNCHBOX_COLUMNS = (
    "id, restaurant_id, name, description, price_cents, image_url, is_available, "
    "dietary_tags_json, available_days_json, building_ids_json, created_at, updated_at"
)

# 请求字段 -> 存储 JSON 的列
_JSON_FIELDS = {
    "dietary_tags": "dietary_tags_json",
    "available_days": "available_days_json",
    "eligible_building_ids": "building_ids_json",
}


def _loads(raw: Optional[str]) -> list:
    return json.loads(raw) if raw else []


def _to_lunchbox(row: Dict[str, Any]) -> Lunchbox:
    data = dict(row)
    data["price"] = from_cents(data.pop("price_cents"))
    data["dietary_tags"] = _loads(data.pop("dietary_tags_json"))
    data["available_days"] = _loads(data.pop("available_days_json"))
    data["eligible_building_ids"] = _loads(data.pop("building_ids_json"))
    return Lunchbox(**data)


def _dump_days(days) -> str:
    return json.dumps([getattr(d, "value", d) for d in days])


class LunchboxService:
    """午餐盒服务"""

    def __init__(self):
        self.db = db_manager

    def can_see_unavailable(self, viewer: Optional[User], restaurant: Restaurant) -> bool:
        if viewer is None:
            return False
        if viewer.is_admin:
            return True
        return Role(viewer.role) == Role.RESTAURANT_OWNER and restaurant.owner_id == viewer.id

    def list_by_restaurant(self, restaurant_id: int, viewer: Optional[User] = None) -> List[Lunchbox]:
        """餐厅菜单；店主查看自己的餐厅和管理员可看到已下架的商品"""
        restaurant = restaurant_service.get_restaurant_or_404(restaurant_id)
        query = f"SELECT {LUNCHBOX_COLUMNS} FROM lunchboxes WHERE restaurant_id = ?"
        if not self.can_see_unavailable(viewer, restaurant):
            query += " AND is_available"
        query += " ORDER BY id"
        return [_to_lunchbox(row) for row in self.db.fetch_all(query, [restaurant_id])]

    def get_lunchbox(self, lunchbox_id: int) -> Optional[Lunchbox]:
        row = self.db.fetch_one(
            f"SELECT {LUNCHBOX_COLUMNS} FROM lunchboxes WHERE id = ?", [lunchbox_id]
        )
        return _to_lunchbox(row) if row else None

    def get_lunchbox_or_404(self, lunchbox_id: int) -> Lunchbox:
        lunchbox = self.get_lunchbox(lunchbox_id)
        if lunchbox is None:
            raise NotFoundError("午餐盒", lunchbox_id)
        return lunchbox

    def get_many(self, lunchbox_ids: Iterable[int]) -> Dict[int, Lunchbox]:
        """批量读取，按ID返回；不存在的ID不出现在结果中"""
        ids = sorted(set(lunchbox_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = self.db.fetch_all(
            f"SELECT {LUNCHBOX_COLUMNS} FROM lunchboxes WHERE id IN ({placeholders})", ids
        )
        return {row["id"]: _to_lunchbox(row) for row in rows}

    def _default_building_ids(self, restaurant: Restaurant) -> List[int]:
        if restaurant.delivery_location_id is None:
            return []
        rows = self.db.fetch_all(
            "SELECT id FROM delivery_buildings WHERE delivery_location_id = ? AND is_active ORDER BY id",
            [restaurant.delivery_location_id],
        )
        return [row["id"] for row in rows]

    def _check_building_ids(self, restaurant: Restaurant, building_ids: List[int]):
        """楼宇必须存在且属于餐厅服务的配送地点"""
        if not building_ids:
            return
        ids = sorted(set(building_ids))
        placeholders = ", ".join("?" for _ in ids)
        rows = self.db.fetch_all(
            f"SELECT id, delivery_location_id FROM delivery_buildings WHERE id IN ({placeholders})", ids
        )
        valid = {
            row["id"] for row in rows
            if restaurant.delivery_location_id is None
            or row["delivery_location_id"] == restaurant.delivery_location_id
        }
        invalid = set(ids) - valid
        if invalid:
            raise ValidationError(
                "楼宇不存在或不在餐厅的配送范围内", details={"building_ids": sorted(invalid)}
            )

    def create_lunchbox(self, actor: User, restaurant_id: int, data: LunchboxCreateRequest) -> Lunchbox:
        """在指定餐厅下新建午餐盒"""
        require_capability(actor, Resource.LUNCHBOX, Action.CREATE)
        restaurant = restaurant_service.get_restaurant_or_404(restaurant_id)
        authorize(actor, Resource.LUNCHBOX, Action.CREATE, owner_id=restaurant.owner_id)

        if data.eligible_building_ids is None:
            building_ids = self._default_building_ids(restaurant)
        else:
            building_ids = sorted(set(data.eligible_building_ids))
            self._check_building_ids(restaurant, building_ids)

        def work(conn):
            row = row_as_dict(
                conn,
                f"""
                INSERT INTO lunchboxes(restaurant_id, name, description, price_cents, image_url, is_available,
                                       dietary_tags_json, available_days_json, building_ids_json)
                VALUES (?,?,?,?,?,?,?,?,?)
                RETURNING {LUNCHBOX_COLUMNS}
                """,
                [restaurant_id, data.name, data.description, to_cents(data.price), data.image_url,
                 data.is_available, json.dumps(data.dietary_tags, ensure_ascii=False),
                 _dump_days(data.available_days), json.dumps(building_ids)],
            )
            write_audit_log(
                conn, "lunchbox_create",
                {"lunchbox_id": row["id"], "restaurant_id": restaurant_id, "price": str(data.price)},
                user_id=restaurant.owner_id, actor_id=actor.id,
            )
            return row

        return _to_lunchbox(self.db.run_in_transaction(work))

    def update_lunchbox(self, actor: User, lunchbox_id: int, data: LunchboxUpdateRequest) -> Lunchbox:
        """更新午餐盒；已下单的订单价格不受影响"""
        require_capability(actor, Resource.LUNCHBOX, Action.UPDATE)
        lunchbox = self.get_lunchbox_or_404(lunchbox_id)
        restaurant = restaurant_service.get_restaurant_or_404(lunchbox.restaurant_id)
        authorize(actor, Resource.LUNCHBOX, Action.UPDATE, owner_id=restaurant.owner_id)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return lunchbox

        columns: Dict[str, Any] = {}
        for field, value in changes.items():
            if field == "price":
                columns["price_cents"] = to_cents(value)
            elif field == "available_days":
                columns["available_days_json"] = _dump_days(value)
            elif field == "eligible_building_ids":
                building_ids = sorted(set(value))
                self._check_building_ids(restaurant, building_ids)
                columns["building_ids_json"] = json.dumps(building_ids)
            elif field in _JSON_FIELDS:
                columns[_JSON_FIELDS[field]] = json.dumps(value, ensure_ascii=False)
            else:
                columns[field] = value

        assignments = ", ".join(f"{column} = ?" for column in columns)

        def work(conn):
            row = row_as_dict(
                conn,
                f"UPDATE lunchboxes SET {assignments}, updated_at = now() WHERE id = ? RETURNING {LUNCHBOX_COLUMNS}",
                [*columns.values(), lunchbox_id],
            )
            write_audit_log(
                conn, "lunchbox_update", {"lunchbox_id": lunchbox_id, "changes": changes},
                user_id=restaurant.owner_id, actor_id=actor.id,
            )
            return row

        return _to_lunchbox(self.db.run_in_transaction(work))

    def delete_lunchbox(self, actor: User, lunchbox_id: int) -> None:
        require_capability(actor, Resource.LUNCHBOX, Action.DELETE)
        lunchbox = self.get_lunchbox_or_404(lunchbox_id)
        restaurant = restaurant_service.get_restaurant_or_404(lunchbox.restaurant_id)
        authorize(actor, Resource.LUNCHBOX, Action.DELETE, owner_id=restaurant.owner_id)

        def work(conn):
            conn.execute("DELETE FROM lunchboxes WHERE id = ?", [lunchbox_id])
            write_audit_log(
                conn, "lunchbox_delete", {"lunchbox_id": lunchbox_id, "restaurant_id": restaurant.id},
                user_id=restaurant.owner_id, actor_id=actor.id,
            )

        self.db.run_in_transaction(work)


# 全局服务实例
lunchbox_service = LunchboxService()
