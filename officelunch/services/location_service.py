"""
配送地点服务
配送地点与楼宇由管理员维护，所有人可读
"""

from typing import List, Optional

from ..core.audit import write_audit_log
from ..core.authorization import Action, Resource, authorize, require_capability
from ..core.database import db_manager, row_as_dict
from ..core.exceptions import NotFoundError
from ..models.location import DeliveryBuilding, DeliveryLocation
from ..models.user import User
from ..schemas.location import (
    BuildingCreateRequest,
    BuildingUpdateRequest,
    LocationCreateRequest,
    LocationUpdateRequest,
)

LOCATION_COLUMNS = "id, name, address, is_active, created_at"
BUILDING_COLUMNS = "id, name, delivery_location_id, is_active, created_at"


class LocationService:
    """配送地点服务"""

    def __init__(self):
        self.db = db_manager

    # ---- 配送地点 ----

    def list_locations(self, include_inactive: bool = False) -> List[DeliveryLocation]:
        query = f"SELECT {LOCATION_COLUMNS} FROM delivery_locations"
        if not include_inactive:
            query += " WHERE is_active"
        query += " ORDER BY name"
        return [DeliveryLocation(**row) for row in self.db.fetch_all(query)]

    def get_location(self, location_id: int) -> Optional[DeliveryLocation]:
        row = self.db.fetch_one(
            f"SELECT {LOCATION_COLUMNS} FROM delivery_locations WHERE id = ?", [location_id]
        )
        return DeliveryLocation(**row) if row else None

    def create_location(self, actor: User, data: LocationCreateRequest) -> DeliveryLocation:
        authorize(actor, Resource.DELIVERY_LOCATION, Action.CREATE)

        def work(conn):
            row = row_as_dict(
                conn,
                f"INSERT INTO delivery_locations(name, address, is_active) VALUES (?,?,?) RETURNING {LOCATION_COLUMNS}",
                [data.name, data.address, data.is_active],
            )
            write_audit_log(conn, "location_create", {"location_id": row["id"], "name": data.name}, actor_id=actor.id)
            return row

        return DeliveryLocation(**self.db.run_in_transaction(work))

    def update_location(self, actor: User, location_id: int, data: LocationUpdateRequest) -> DeliveryLocation:
        require_capability(actor, Resource.DELIVERY_LOCATION, Action.UPDATE)
        location = self.get_location(location_id)
        if location is None:
            raise NotFoundError("配送地点", location_id)
        authorize(actor, Resource.DELIVERY_LOCATION, Action.UPDATE)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return location

        assignments = ", ".join(f"{field} = ?" for field in changes)

        def work(conn):
            row = row_as_dict(
                conn,
                f"UPDATE delivery_locations SET {assignments} WHERE id = ? RETURNING {LOCATION_COLUMNS}",
                [*changes.values(), location_id],
            )
            write_audit_log(conn, "location_update", {"location_id": location_id, "changes": changes}, actor_id=actor.id)
            return row

        return DeliveryLocation(**self.db.run_in_transaction(work))

    def delete_location(self, actor: User, location_id: int) -> None:
        """删除配送地点及其下属楼宇"""
        require_capability(actor, Resource.DELIVERY_LOCATION, Action.DELETE)
        if self.get_location(location_id) is None:
            raise NotFoundError("配送地点", location_id)
        authorize(actor, Resource.DELIVERY_LOCATION, Action.DELETE)

        def work(conn):
            conn.execute("DELETE FROM delivery_buildings WHERE delivery_location_id = ?", [location_id])
            conn.execute("DELETE FROM delivery_locations WHERE id = ?", [location_id])
            write_audit_log(conn, "location_delete", {"location_id": location_id}, actor_id=actor.id)

        self.db.run_in_transaction(work)

    # ---- 楼宇 ----

    def list_buildings(self, location_id: Optional[int] = None, include_inactive: bool = False) -> List[DeliveryBuilding]:
        conditions = []
        params = []
        if location_id is not None:
            conditions.append("delivery_location_id = ?")
            params.append(location_id)
        if not include_inactive:
            conditions.append("is_active")
        query = f"SELECT {BUILDING_COLUMNS} FROM delivery_buildings"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY id"
        return [DeliveryBuilding(**row) for row in self.db.fetch_all(query, params)]

    def get_building(self, building_id: int) -> Optional[DeliveryBuilding]:
        row = self.db.fetch_one(
            f"SELECT {BUILDING_COLUMNS} FROM delivery_buildings WHERE id = ?", [building_id]
        )
        return DeliveryBuilding(**row) if row else None

    def create_building(self, actor: User, location_id: int, data: BuildingCreateRequest) -> DeliveryBuilding:
        require_capability(actor, Resource.DELIVERY_BUILDING, Action.CREATE)
        if self.get_location(location_id) is None:
            raise NotFoundError("配送地点", location_id)
        authorize(actor, Resource.DELIVERY_BUILDING, Action.CREATE)

        def work(conn):
            row = row_as_dict(
                conn,
                f"INSERT INTO delivery_buildings(name, delivery_location_id, is_active) VALUES (?,?,?) RETURNING {BUILDING_COLUMNS}",
                [data.name, location_id, data.is_active],
            )
            write_audit_log(conn, "building_create", {"building_id": row["id"], "location_id": location_id}, actor_id=actor.id)
            return row

        return DeliveryBuilding(**self.db.run_in_transaction(work))

    def update_building(self, actor: User, building_id: int, data: BuildingUpdateRequest) -> DeliveryBuilding:
        require_capability(actor, Resource.DELIVERY_BUILDING, Action.UPDATE)
        building = self.get_building(building_id)
        if building is None:
            raise NotFoundError("楼宇", building_id)
        authorize(actor, Resource.DELIVERY_BUILDING, Action.UPDATE)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return building

        assignments = ", ".join(f"{field} = ?" for field in changes)

        def work(conn):
            row = row_as_dict(
                conn,
                f"UPDATE delivery_buildings SET {assignments} WHERE id = ? RETURNING {BUILDING_COLUMNS}",
                [*changes.values(), building_id],
            )
            write_audit_log(conn, "building_update", {"building_id": building_id, "changes": changes}, actor_id=actor.id)
            return row

        return DeliveryBuilding(**self.db.run_in_transaction(work))

    def delete_building(self, actor: User, building_id: int) -> None:
        require_capability(actor, Resource.DELIVERY_BUILDING, Action.DELETE)
        if self.get_building(building_id) is None:
            raise NotFoundError("楼宇", building_id)
        authorize(actor, Resource.DELIVERY_BUILDING, Action.DELETE)

        def work(conn):
            conn.execute("DELETE FROM delivery_buildings WHERE id = ?", [building_id])
            write_audit_log(conn, "building_delete", {"building_id": building_id}, actor_id=actor.id)

        self.db.run_in_transaction(work)


# 全局服务实例
location_service = LocationService()
