"""
午餐盒路由模块
新建午餐盒挂在餐厅路由下：POST /restaurants/{id}/lunchboxes
"""

from typing import Optional

from fastapi import APIRouter, Depends

from ...core.exceptions import NotFoundError
from ...core.security import get_current_user, get_optional_user
from ...models.lunchbox import Lunchbox
from ...models.user import User
from ...schemas.common import DeleteResponse, pick_responses
from ...schemas.lunchbox import LunchboxUpdateRequest
from ...services.lunchbox_service import lunchbox_service
from ...services.restaurant_service import restaurant_service

router = APIRouter()


@router.get("/{lunchbox_id}", response_model=Lunchbox, responses=pick_responses(404))
def get_lunchbox(lunchbox_id: int, user: Optional[User] = Depends(get_optional_user)):
    """下架商品只对所属店主和管理员可见"""
    lunchbox = lunchbox_service.get_lunchbox_or_404(lunchbox_id)
    if not lunchbox.is_available:
        restaurant = restaurant_service.get_restaurant_or_404(lunchbox.restaurant_id)
        if not lunchbox_service.can_see_unavailable(user, restaurant):
            raise NotFoundError("午餐盒", lunchbox_id)
    return lunchbox


@router.patch("/{lunchbox_id}", response_model=Lunchbox, responses=pick_responses(401, 403, 404))
def update_lunchbox(lunchbox_id: int, req: LunchboxUpdateRequest, user: User = Depends(get_current_user)):
    return lunchbox_service.update_lunchbox(user, lunchbox_id, req)


@router.delete("/{lunchbox_id}", response_model=DeleteResponse, responses=pick_responses(401, 403, 404))
def delete_lunchbox(lunchbox_id: int, user: User = Depends(get_current_user)):
    lunchbox_service.delete_lunchbox(user, lunchbox_id)
    return DeleteResponse(id=lunchbox_id)
