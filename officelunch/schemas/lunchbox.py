"""
午餐盒（菜单项）相关的请求模式
"""

from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field

from ..models.lunchbox import Weekday, WORKDAYS


class LunchboxCreateRequest(BaseModel):
    """午餐盒创建请求；未指定楼宇时默认餐厅配送地点下的全部启用楼宇"""
    name: str = Field(..., min_length=1, max_length=200, description="名称")
    description: str = Field(..., min_length=1, max_length=1000, description="描述")
    price: Decimal = Field(..., gt=0, decimal_places=2, description="单价")
    image_url: Optional[str] = Field(None, description="图片URL")
    is_available: bool = Field(True, description="是否可售")
    dietary_tags: List[str] = Field(default_factory=list, description="饮食标签")
    available_days: List[Weekday] = Field(default_factory=lambda: list(WORKDAYS), description="可配送的星期")
    eligible_building_ids: Optional[List[int]] = Field(None, description="可配送的楼宇")


class LunchboxUpdateRequest(BaseModel):
    """午餐盒更新请求，未提供的字段保持不变"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=1000)
    price: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    image_url: Optional[str] = None
    is_available: Optional[bool] = None
    dietary_tags: Optional[List[str]] = None
    available_days: Optional[List[Weekday]] = None
    eligible_building_ids: Optional[List[int]] = None
