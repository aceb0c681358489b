"""
结账路由模块
计价、配送资格校验、可选配送日与楼宇、支付意向

这些接口都不落库；真正的校验在下单时由服务端重新执行一次
"""

from fastapi import APIRouter, Depends

from ...core.authorization import Action, Resource, require_capability
from ...core.security import get_current_user
from ...models.order import OrderTotals
from ...models.user import User
from ...schemas.checkout import (
    AvailabilityRequest,
    AvailabilityResponse,
    EligibilityRequest,
    PaymentIntentRequest,
    TotalsRequest,
)
from ...schemas.common import pick_responses
from ...services import eligibility
from ...services.cart_service import cart_service
from ...services.eligibility import EligibilityResult
from ...services.location_service import location_service
from ...services.payment_service import PaymentIntentResult, payment_service
from ...services.pricing import compute_totals

router = APIRouter()


@router.post("/totals", response_model=OrderTotals, responses=pick_responses(401))
def checkout_totals(req: TotalsRequest, user: User = Depends(get_current_user)):
    """计算订单金额明细（纯计算）"""
    return compute_totals(req.items, req.delivery_fee)


@router.post("/eligibility", response_model=EligibilityResult, responses=pick_responses(401, 409))
def check_eligibility(req: EligibilityRequest, user: User = Depends(get_current_user)):
    """校验购物车在所选配送日和楼宇下是否全部可配送"""
    lines = cart_service.build_cart_lines(req.items)
    return eligibility.validate(lines, req.delivery_day, req.delivery_building_id)


@router.post("/availability", response_model=AvailabilityResponse, responses=pick_responses(409))
def checkout_availability(req: AvailabilityRequest):
    """所有商品均可配送的楼宇与星期（取交集）"""
    lines = cart_service.build_cart_lines(req.items)
    buildings = location_service.list_buildings()
    return AvailabilityResponse(
        buildings=eligibility.available_buildings(lines, buildings),
        days=eligibility.available_days(lines),
    )


@router.post("/payment-intent", response_model=PaymentIntentResult, responses=pick_responses(401, 403))
def create_payment_intent(req: PaymentIntentRequest, user: User = Depends(get_current_user)):
    """向支付机构申请固定金额的授权，返回客户端确认支付用的 client secret"""
    require_capability(user, Resource.ORDER, Action.CREATE)
    return payment_service.create_payment_intent(req.amount, customer_id=user.id)
