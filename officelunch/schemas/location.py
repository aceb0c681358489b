"""
配送地点与楼宇的请求模式
"""

from typing import Optional
from pydantic import BaseModel, Field


class LocationCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="名称")
    address: str = Field(..., min_length=1, max_length=500, description="地址")
    is_active: bool = Field(True, description="是否启用")


class LocationUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = Field(None, min_length=1, max_length=500)
    is_active: Optional[bool] = None


class BuildingCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="楼宇名称")
    is_active: bool = Field(True, description="是否启用")


class BuildingUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    is_active: Optional[bool] = None
