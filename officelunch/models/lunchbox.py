"""
午餐盒（菜单项）数据模型
"""

from decimal import Decimal
from enum import Enum
from pydantic import Field
from typing import List, Optional
from .base import BaseEntity, TimestampMixin


class Weekday(str, Enum):
    """配送日"""
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def ordered(cls) -> List[str]:
        return [d.value for d in cls]


WORKDAYS = [Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY, Weekday.THURSDAY, Weekday.FRIDAY]


class Lunchbox(BaseEntity, TimestampMixin):
    """午餐盒完整模型"""
    id: int = Field(..., description="午餐盒ID")
    restaurant_id: int = Field(..., description="所属餐厅")
    name: str = Field(..., description="名称")
    description: str = Field(..., description="描述")
    price: Decimal = Field(..., description="单价")
    image_url: Optional[str] = Field(None, description="图片URL")
    is_available: bool = Field(True, description="是否可售")
    dietary_tags: List[str] = Field(default_factory=list, description="饮食标签")
    available_days: List[Weekday] = Field(default_factory=list, description="可配送的星期")
    eligible_building_ids: List[int] = Field(default_factory=list, description="可配送的楼宇")
