"""
权限控制
角色 × 资源类型 → 允许的操作及范围，所有写操作在落库前都通过 authorize 重新校验

范围说明：
- ANY: 不限归属
- OWN: 资源必须归属当前用户（餐厅按 owner_id，订单对顾客按 customer_id、
  对店主按所属餐厅的 owner_id，个人资料按用户本身）
"""

from enum import Enum
from typing import Dict, Optional

from ..models.user import Role, User
from .exceptions import AuthorizationError
from .logging import logger


class Resource(str, Enum):
    RESTAURANT = "restaurant"
    LUNCHBOX = "lunchbox"
    ORDER = "order"
    DELIVERY_LOCATION = "delivery_location"
    DELIVERY_BUILDING = "delivery_building"
    PROFILE = "profile"


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    UPDATE_STATUS = "update_status"


class Scope(str, Enum):
    ANY = "any"
    OWN = "own"


_READ_ONLY = {Action.READ: Scope.ANY}
_FULL = {
    Action.READ: Scope.ANY,
    Action.CREATE: Scope.ANY,
    Action.UPDATE: Scope.ANY,
    Action.DELETE: Scope.ANY,
}
_OWN_PROFILE = {Action.READ: Scope.OWN, Action.UPDATE: Scope.OWN}

PERMISSIONS: Dict[Role, Dict[Resource, Dict[Action, Scope]]] = {
    Role.CUSTOMER: {
        Resource.RESTAURANT: _READ_ONLY,
        Resource.LUNCHBOX: _READ_ONLY,
        Resource.DELIVERY_LOCATION: _READ_ONLY,
        Resource.DELIVERY_BUILDING: _READ_ONLY,
        Resource.ORDER: {Action.CREATE: Scope.OWN, Action.READ: Scope.OWN},
        Resource.PROFILE: _OWN_PROFILE,
    },
    Role.RESTAURANT_OWNER: {
        Resource.RESTAURANT: {
            Action.READ: Scope.ANY,
            Action.CREATE: Scope.OWN,
            Action.UPDATE: Scope.OWN,
        },
        Resource.LUNCHBOX: {
            Action.READ: Scope.ANY,
            Action.CREATE: Scope.OWN,
            Action.UPDATE: Scope.OWN,
            Action.DELETE: Scope.OWN,
        },
        Resource.DELIVERY_LOCATION: _READ_ONLY,
        Resource.DELIVERY_BUILDING: _READ_ONLY,
        Resource.ORDER: {Action.READ: Scope.OWN, Action.UPDATE_STATUS: Scope.OWN},
        Resource.PROFILE: _OWN_PROFILE,
    },
    Role.ADMIN: {
        Resource.RESTAURANT: _FULL,
        Resource.LUNCHBOX: _FULL,
        Resource.DELIVERY_LOCATION: _FULL,
        Resource.DELIVERY_BUILDING: _FULL,
        Resource.ORDER: {Action.READ: Scope.ANY, Action.UPDATE_STATUS: Scope.ANY},
        Resource.PROFILE: _OWN_PROFILE,
    },
}


def scope_for(user: User, resource: Resource, action: Action) -> Optional[Scope]:
    """查询角色对某类资源某操作的范围，无权限时返回 None"""
    role = Role(user.role)
    return PERMISSIONS.get(role, {}).get(Resource(resource), {}).get(Action(action))


def can(user: User, resource: Resource, action: Action, owner_id: Optional[int] = None) -> bool:
    scope = scope_for(user, resource, action)
    if scope is None:
        return False
    if scope == Scope.ANY:
        return True
    return owner_id is not None and owner_id == user.id


def require_capability(user: User, resource: Resource, action: Action) -> Scope:
    """
    仅按角色校验（不看归属），用于在查询资源前拒绝完全无权的角色，
    避免通过 404/403 的差异探测资源是否存在
    """
    scope = scope_for(user, resource, action)
    if scope is None:
        _deny(user, resource, action, None)
    return scope


def authorize(user: User, resource: Resource, action: Action, owner_id: Optional[int] = None) -> None:
    """
    统一授权入口

    Args:
        user: 当前用户（角色以数据库为准）
        resource: 资源类型
        action: 操作
        owner_id: 资源在当前角色视角下的归属用户ID

    Raises:
        AuthorizationError: 角色无此权限或资源不归属当前用户
    """
    if not can(user, resource, action, owner_id):
        _deny(user, resource, action, owner_id)


def _deny(user: User, resource: Resource, action: Action, owner_id: Optional[int]):
    logger.warning(
        "authorization_denied",
        user_id=user.id,
        role=str(Role(user.role).value),
        resource=Resource(resource).value,
        action=Action(action).value,
        owner_id=owner_id,
    )
    raise AuthorizationError()
