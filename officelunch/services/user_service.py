"""
用户服务
处理账户开通、个人资料和角色选择
"""

from datetime import datetime
from typing import Any, Dict, Optional

from ..core.audit import write_audit_log
from ..core.authorization import Action, Resource, authorize
from ..core.database import db_manager, row_as_dict
from ..core.exceptions import NotFoundError, StateConflictError, ValidationError
from ..models.user import Role, User
from ..schemas.user import ProfileUpdateRequest

USER_COLUMNS = (
    "id, external_id, username, email, role, role_selected, full_name, "
    "phone_number, delivery_location_id, created_at, updated_at"
)


def _to_user(row: Dict[str, Any]) -> User:
    return User(**row)


class UserService:
    """用户服务"""

    def __init__(self):
        self.db = db_manager

    def get_user(self, user_id: int) -> Optional[User]:
        row = self.db.fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", [user_id])
        return _to_user(row) if row else None

    def get_by_external_id(self, external_id: str) -> Optional[User]:
        row = self.db.fetch_one(
            f"SELECT {USER_COLUMNS} FROM users WHERE external_id = ?", [external_id]
        )
        return _to_user(row) if row else None

    def create_user(
        self,
        external_id: str,
        role: Role = Role.CUSTOMER,
        username: Optional[str] = None,
        email: Optional[str] = None,
        full_name: Optional[str] = None,
        phone_number: Optional[str] = None,
        delivery_location_id: Optional[int] = None,
    ) -> User:
        """创建账户（账户注册由认证方负责，这里只落库）"""
        role = Role(role)

        def work(conn):
            return row_as_dict(
                conn,
                f"""
                INSERT INTO users(external_id, username, email, role, role_selected,
                                  full_name, phone_number, delivery_location_id)
                VALUES (?,?,?,?,?,?,?,?)
                RETURNING {USER_COLUMNS}
                """,
                [external_id, username, email, role.value, role != Role.CUSTOMER,
                 full_name, phone_number, delivery_location_id],
            )

        return _to_user(self.db.run_in_transaction(work))

    def get_or_create_by_external_id(self, external_id: str) -> User:
        """获取或开通账户，新账户默认为顾客"""
        user = self.get_by_external_id(external_id)
        if user is None:
            user = self.create_user(external_id)
        return user

    def update_profile(self, actor: User, user_id: int, data: ProfileUpdateRequest) -> User:
        """更新个人资料（只能修改本人）"""
        authorize(actor, Resource.PROFILE, Action.UPDATE, owner_id=user_id)

        if data.delivery_location_id is not None:
            location = self.db.fetch_one(
                "SELECT id FROM delivery_locations WHERE id = ? AND is_active", [data.delivery_location_id]
            )
            if not location:
                raise ValidationError(
                    "配送地点不存在或已停用",
                    details={"delivery_location_id": data.delivery_location_id},
                )

        update_fields = []
        params = []
        if data.full_name is not None:
            update_fields.append("full_name = ?")
            params.append(data.full_name.strip())
        if data.phone_number is not None:
            update_fields.append("phone_number = ?")
            params.append(data.phone_number.strip())
        if data.delivery_location_id is not None:
            update_fields.append("delivery_location_id = ?")
            params.append(data.delivery_location_id)

        if update_fields:
            update_fields.append("updated_at = ?")
            params.append(datetime.now())
            params.append(user_id)
            query = f"UPDATE users SET {', '.join(update_fields)} WHERE id = ?"
            self.db.execute_query(query, params)

        user = self.get_user(user_id)
        if user is None:
            raise NotFoundError("用户", user_id)
        return user

    def select_role(self, actor: User, role: str) -> User:
        """注册后一次性选择角色"""
        authorize(actor, Resource.PROFILE, Action.UPDATE, owner_id=actor.id)
        role = Role(role)
        if role == Role.ADMIN:
            raise ValidationError("不能自行选择管理员角色")
        if actor.role_selected:
            raise StateConflictError("角色已选择，不能再次修改", error_code="ROLE_ALREADY_SELECTED")

        def work(conn):
            conn.execute(
                "UPDATE users SET role = ?, role_selected = TRUE, updated_at = now() WHERE id = ?",
                [role.value, actor.id],
            )
            write_audit_log(conn, "role_select", {"role": role.value}, actor.id, actor.id)

        self.db.run_in_transaction(work)
        return self.get_user(actor.id)


# 全局服务实例
user_service = UserService()
