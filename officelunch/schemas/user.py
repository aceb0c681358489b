"""
用户资料相关的请求模式
"""

from typing import Literal, Optional
from pydantic import BaseModel, Field


class ProfileUpdateRequest(BaseModel):
    """个人资料更新请求，未提供的字段保持不变"""
    full_name: Optional[str] = Field(None, max_length=100, description="姓名")
    phone_number: Optional[str] = Field(None, max_length=30, description="手机号")
    delivery_location_id: Optional[int] = Field(None, description="默认配送地点")


class RoleSelectionRequest(BaseModel):
    """注册后选择角色（管理员不可自选）"""
    role: Literal["customer", "restaurant_owner"] = Field(..., description="角色")
