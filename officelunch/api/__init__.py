"""
API routes and endpoints.
"""

from fastapi import APIRouter
from .v1 import cart, checkout, locations, lunchboxes, orders, restaurants, users

api_router = APIRouter()

api_router.include_router(users.router, prefix="/users", tags=["用户"])
api_router.include_router(locations.router, prefix="", tags=["配送地点"])
api_router.include_router(restaurants.router, prefix="/restaurants", tags=["餐厅"])
api_router.include_router(lunchboxes.router, prefix="/lunchboxes", tags=["午餐盒"])
api_router.include_router(cart.router, prefix="/cart", tags=["购物车"])
api_router.include_router(checkout.router, prefix="/checkout", tags=["结账"])
api_router.include_router(orders.router, prefix="/orders", tags=["订单"])
