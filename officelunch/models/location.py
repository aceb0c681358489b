"""
配送地点与楼宇数据模型
"""

from pydantic import Field
from .base import BaseEntity, TimestampMixin


class DeliveryLocation(BaseEntity, TimestampMixin):
    """配送地点（如园区）"""
    id: int = Field(..., description="地点ID")
    name: str = Field(..., description="名称")
    address: str = Field(..., description="地址")
    is_active: bool = Field(True, description="是否启用")


class DeliveryBuilding(BaseEntity, TimestampMixin):
    """配送地点下的具体楼宇"""
    id: int = Field(..., description="楼宇ID")
    name: str = Field(..., description="名称")
    delivery_location_id: int = Field(..., description="所属配送地点")
    is_active: bool = Field(True, description="是否启用")
