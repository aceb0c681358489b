"""
用户相关数据模型
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from enum import Enum
from .base import BaseEntity, TimestampMixin


class Role(str, Enum):
    """账户角色"""
    CUSTOMER = "customer"
    RESTAURANT_OWNER = "restaurant_owner"
    ADMIN = "admin"


class User(BaseEntity, TimestampMixin):
    """用户完整模型"""
    id: int = Field(..., description="用户ID")
    external_id: str = Field(..., description="认证方主体标识")
    username: Optional[str] = Field(None, description="用户名")
    email: Optional[str] = Field(None, description="邮箱")
    role: Role = Field(Role.CUSTOMER, description="角色")
    role_selected: bool = Field(False, description="是否已选择角色")
    full_name: Optional[str] = Field(None, description="姓名")
    phone_number: Optional[str] = Field(None, description="手机号")
    delivery_location_id: Optional[int] = Field(None, description="默认配送地点")

    @property
    def missing_profile_fields(self) -> List[str]:
        """下单前必须填写但仍为空的字段"""
        missing = []
        if not (self.full_name and self.full_name.strip()):
            missing.append("full_name")
        if not (self.phone_number and self.phone_number.strip()):
            missing.append("phone_number")
        return missing

    @property
    def profile_complete(self) -> bool:
        """姓名和手机号均非空白时资料才算完整"""
        return not self.missing_profile_fields

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class UserProfile(BaseModel):
    """用户档案"""
    user_id: int = Field(..., description="用户ID")
    username: Optional[str] = Field(None, description="用户名")
    email: Optional[str] = Field(None, description="邮箱")
    role: Role = Field(..., description="角色")
    role_selected: bool = Field(False, description="是否已选择角色")
    full_name: Optional[str] = Field(None, description="姓名")
    phone_number: Optional[str] = Field(None, description="手机号")
    delivery_location_id: Optional[int] = Field(None, description="默认配送地点")
    profile_complete: bool = Field(..., description="资料是否完整")

    @classmethod
    def from_user(cls, user: User) -> "UserProfile":
        return cls(
            user_id=user.id,
            username=user.username,
            email=user.email,
            role=user.role,
            role_selected=user.role_selected,
            full_name=user.full_name,
            phone_number=user.phone_number,
            delivery_location_id=user.delivery_location_id,
            profile_complete=user.profile_complete,
        )
