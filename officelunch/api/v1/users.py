"""
用户路由模块
个人资料查询、更新与一次性角色选择
"""

from fastapi import APIRouter, Depends

from ...core.authorization import Action, Resource, authorize
from ...core.security import get_current_user
from ...models.user import User, UserProfile
from ...schemas.common import pick_responses
from ...schemas.user import ProfileUpdateRequest, RoleSelectionRequest
from ...services.user_service import user_service

router = APIRouter()


@router.get("/me", response_model=UserProfile, responses=pick_responses(401))
def get_my_profile(user: User = Depends(get_current_user)):
    """获取本人资料"""
    authorize(user, Resource.PROFILE, Action.READ, owner_id=user.id)
    return UserProfile.from_user(user)


@router.put("/me", response_model=UserProfile, responses=pick_responses(401))
def update_my_profile(req: ProfileUpdateRequest, user: User = Depends(get_current_user)):
    """更新姓名、手机号和默认配送地点"""
    updated = user_service.update_profile(user, user.id, req)
    return UserProfile.from_user(updated)


@router.post("/me/role", response_model=UserProfile, responses=pick_responses(401, 409))
def select_my_role(req: RoleSelectionRequest, user: User = Depends(get_current_user)):
    """注册后选择角色（顾客或店主），只能选择一次"""
    updated = user_service.select_role(user, req.role)
    return UserProfile.from_user(updated)
