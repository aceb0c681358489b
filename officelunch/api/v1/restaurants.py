"""
餐厅路由模块
"""

from typing import List, Optional

from fastapi import APIRouter, Depends

from ...core.exceptions import NotFoundError
from ...core.security import get_current_user, get_optional_user
from ...models.lunchbox import Lunchbox
from ...models.restaurant import Restaurant
from ...models.user import User
from ...schemas.common import DeleteResponse, pick_responses
from ...schemas.lunchbox import LunchboxCreateRequest
from ...schemas.restaurant import RestaurantCreateRequest, RestaurantUpdateRequest
from ...services.lunchbox_service import lunchbox_service
from ...services.restaurant_service import restaurant_service

router = APIRouter()


@router.get("", response_model=List[Restaurant])
def list_restaurants():
    """营业中的餐厅"""
    return restaurant_service.list_restaurants()


@router.get("/owner/{owner_id}", response_model=Restaurant, responses=pick_responses(404))
def get_restaurant_by_owner(owner_id: int):
    restaurant = restaurant_service.get_by_owner(owner_id)
    if restaurant is None:
        raise NotFoundError("餐厅", {"owner_id": owner_id})
    return restaurant


@router.get("/{restaurant_id}", response_model=Restaurant, responses=pick_responses(404))
def get_restaurant(restaurant_id: int):
    return restaurant_service.get_restaurant_or_404(restaurant_id)


@router.post("", response_model=Restaurant, status_code=201, responses=pick_responses(401, 403, 409))
def create_restaurant(req: RestaurantCreateRequest, user: User = Depends(get_current_user)):
    return restaurant_service.create_restaurant(user, req)


@router.patch("/{restaurant_id}", response_model=Restaurant, responses=pick_responses(401, 403, 404))
def update_restaurant(restaurant_id: int, req: RestaurantUpdateRequest, user: User = Depends(get_current_user)):
    return restaurant_service.update_restaurant(user, restaurant_id, req)


@router.delete("/{restaurant_id}", response_model=DeleteResponse, responses=pick_responses(401, 403, 404))
def delete_restaurant(restaurant_id: int, user: User = Depends(get_current_user)):
    restaurant_service.delete_restaurant(user, restaurant_id)
    return DeleteResponse(id=restaurant_id)


@router.get("/{restaurant_id}/lunchboxes", response_model=List[Lunchbox], responses=pick_responses(404))
def list_restaurant_lunchboxes(restaurant_id: int, user: Optional[User] = Depends(get_optional_user)):
    """餐厅菜单；顾客只能看到可售商品"""
    return lunchbox_service.list_by_restaurant(restaurant_id, viewer=user)


@router.post("/{restaurant_id}/lunchboxes", response_model=Lunchbox, status_code=201,
             responses=pick_responses(401, 403, 404))
def create_lunchbox(restaurant_id: int, req: LunchboxCreateRequest, user: User = Depends(get_current_user)):
    return lunchbox_service.create_lunchbox(user, restaurant_id, req)
