"""
安全相关功能
签发与校验 JWT，并提供获取当前用户的 FastAPI 依赖

身份由认证方提供（token 的 sub 为外部主体标识），角色一律以数据库为准，
每次请求重新读取，不信任 token 中携带的角色。
"""

import jwt
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config.settings import settings
from ..models.user import User
from ..services.user_service import user_service
from .exceptions import AuthenticationError


class SecurityManager:
    """安全管理器"""

    def create_jwt_token(self, subject: str, additional_claims: Dict[str, Any] = None) -> str:
        """创建JWT token"""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": subject,
            "exp": now + timedelta(hours=settings.jwt_expire_hours),
            "iat": now,
        }
        if additional_claims:
            payload.update(additional_claims)
        return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    def decode_jwt_token(self, token: str) -> Dict[str, Any]:
        """解码JWT token"""
        try:
            return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("登录已过期，请重新登录")
        except jwt.InvalidTokenError as e:
            raise AuthenticationError("无效的身份凭证", details={"reason": str(e)})

    def get_subject_from_token(self, token: str) -> str:
        """从token中提取主体标识"""
        payload = self.decode_jwt_token(token)
        subject = payload.get("sub")
        if not subject:
            raise AuthenticationError("身份凭证缺少主体标识")
        return str(subject)


# 全局安全管理器实例
security_manager = SecurityManager()

_bearer = HTTPBearer(auto_error=False)


def create_access_token(subject: str) -> str:
    return security_manager.create_jwt_token(subject)


def _resolve_user(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[User]:
    if credentials is None or not credentials.credentials:
        return None

    subject = security_manager.get_subject_from_token(credentials.credentials)
    return user_service.get_or_create_by_external_id(subject)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> User:
    """当前登录用户，未登录时返回 401"""
    user = _resolve_user(credentials)
    if user is None:
        raise AuthenticationError("请先登录")
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Optional[User]:
    """当前用户，允许匿名访问；携带了无效 token 时仍返回 401"""
    return _resolve_user(credentials)
