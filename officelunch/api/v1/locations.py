"""
配送地点路由模块
公开查询启用中的地点与楼宇，管理员维护
"""

from typing import List

from fastapi import APIRouter, Depends

from ...core.exceptions import NotFoundError
from ...core.security import get_current_user
from ...models.location import DeliveryBuilding, DeliveryLocation
from ...models.user import User
from ...schemas.common import DeleteResponse, pick_responses
from ...schemas.location import (
    BuildingCreateRequest,
    BuildingUpdateRequest,
    LocationCreateRequest,
    LocationUpdateRequest,
)
from ...services.location_service import location_service

router = APIRouter()


@router.get("/delivery-locations", response_model=List[DeliveryLocation])
def list_locations():
    return location_service.list_locations()


@router.get("/delivery-locations/{location_id}", response_model=DeliveryLocation, responses=pick_responses(404))
def get_location(location_id: int):
    location = location_service.get_location(location_id)
    if location is None or not location.is_active:
        raise NotFoundError("配送地点", location_id)
    return location


@router.post("/delivery-locations", response_model=DeliveryLocation, status_code=201,
             responses=pick_responses(401, 403))
def create_location(req: LocationCreateRequest, user: User = Depends(get_current_user)):
    return location_service.create_location(user, req)


@router.patch("/delivery-locations/{location_id}", response_model=DeliveryLocation,
              responses=pick_responses(401, 403, 404))
def update_location(location_id: int, req: LocationUpdateRequest, user: User = Depends(get_current_user)):
    return location_service.update_location(user, location_id, req)


@router.delete("/delivery-locations/{location_id}", response_model=DeleteResponse,
               responses=pick_responses(401, 403, 404))
def delete_location(location_id: int, user: User = Depends(get_current_user)):
    location_service.delete_location(user, location_id)
    return DeleteResponse(id=location_id)


@router.get("/delivery-locations/{location_id}/buildings", response_model=List[DeliveryBuilding])
def list_buildings(location_id: int):
    """地点下启用中的楼宇"""
    return location_service.list_buildings(location_id)


@router.post("/delivery-locations/{location_id}/buildings", response_model=DeliveryBuilding, status_code=201,
             responses=pick_responses(401, 403, 404))
def create_building(location_id: int, req: BuildingCreateRequest, user: User = Depends(get_current_user)):
    return location_service.create_building(user, location_id, req)


@router.patch("/delivery-buildings/{building_id}", response_model=DeliveryBuilding,
              responses=pick_responses(401, 403, 404))
def update_building(building_id: int, req: BuildingUpdateRequest, user: User = Depends(get_current_user)):
    return location_service.update_building(user, building_id, req)


@router.delete("/delivery-buildings/{building_id}", response_model=DeleteResponse,
               responses=pick_responses(401, 403, 404))
def delete_building(building_id: int, user: User = Depends(get_current_user)):
    location_service.delete_building(user, building_id)
    return DeleteResponse(id=building_id)
