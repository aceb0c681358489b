"""
餐厅数据模型
"""

from decimal import Decimal
from pydantic import Field
from typing import Optional
from .base import BaseEntity, TimestampMixin


class Restaurant(BaseEntity, TimestampMixin):
    """餐厅完整模型"""
    id: int = Field(..., description="餐厅ID")
    name: str = Field(..., description="名称")
    description: Optional[str] = Field(None, description="简介")
    cuisine: str = Field(..., description="菜系")
    image_url: Optional[str] = Field(None, description="图片URL")
    rating: float = Field(0.0, description="评分")
    delivery_time: Optional[str] = Field(None, description="预计送达时间")
    delivery_fee: Decimal = Field(..., description="配送费")
    delivery_location_id: Optional[int] = Field(None, description="服务的配送地点")
    is_active: bool = Field(True, description="是否营业")
    owner_id: Optional[int] = Field(None, description="店主用户ID")
