"""
餐厅相关的请求模式
"""

from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class RestaurantCreateRequest(BaseModel):
    """餐厅创建请求；店主创建时 owner_id 只能为本人"""
    name: str = Field(..., min_length=1, max_length=200, description="名称")
    description: Optional[str] = Field(None, max_length=1000, description="简介")
    cuisine: str = Field(..., min_length=1, max_length=100, description="菜系")
    image_url: Optional[str] = Field(None, description="图片URL")
    delivery_time: Optional[str] = Field(None, max_length=50, description="预计送达时间")
    delivery_fee: Decimal = Field(..., ge=0, decimal_places=2, description="配送费")
    delivery_location_id: Optional[int] = Field(None, description="服务的配送地点")
    is_active: bool = Field(True, description="是否营业")
    owner_id: Optional[int] = Field(None, description="店主用户ID")


class RestaurantUpdateRequest(BaseModel):
    """餐厅更新请求，未提供的字段保持不变"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    cuisine: Optional[str] = Field(None, min_length=1, max_length=100)
    image_url: Optional[str] = None
    delivery_time: Optional[str] = Field(None, max_length=50)
    delivery_fee: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    delivery_location_id: Optional[int] = None
    is_active: Optional[bool] = None
    owner_id: Optional[int] = Field(None, description="仅管理员可变更")
