from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """错误响应格式"""
    success: bool = Field(False, description="请求失败")
    error_code: str = Field(description="错误码")
    message: str = Field(description="错误消息")
    details: Dict[str, Any] = Field(default_factory=dict, description="错误详情")

    model_config = {
        "json_schema_extra": {
            "example": {
                "success": False,
                "error_code": "INELIGIBLE_ITEMS",
                "message": "部分商品在所选配送日或楼宇不可配送",
                "details": {"ineligible_items": [{"lunchbox_id": 3, "day_unavailable": True}]},
            }
        }
    }


class DeleteResponse(BaseModel):
    """删除结果"""
    id: int = Field(..., description="被删除的资源ID")
    deleted: bool = Field(True, description="是否已删除")


ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    401: {"model": ErrorResponse, "description": "未认证"},
    403: {"model": ErrorResponse, "description": "无权限"},
    404: {"model": ErrorResponse, "description": "资源不存在"},
    409: {"model": ErrorResponse, "description": "业务规则冲突"},
}


def pick_responses(*codes: int) -> Dict[int, Dict[str, Any]]:
    return {code: ERROR_RESPONSES[code] for code in codes}
