"""
自定义异常类
提供更精确的错误处理和异常信息

分类：
- ValidationError: 请求参数形状/范围错误
- AuthenticationError: 缺少或无效的身份凭证
- AuthorizationError: 角色或归属不匹配
- NotFoundError: 资源不存在（仅对有权操作该类资源的角色暴露）
- StateConflictError: 业务规则冲突，在访问存储前即可判定
- PersistenceError: 基础设施故障，重试耗尽后才会抛出
- ExternalServiceError: 支付机构不可用或拒绝请求
"""

from typing import Any, Dict, Iterable, List, Optional


class BaseApplicationError(Exception):
    """应用基础异常类"""

    code: Optional[str] = None

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None
    ):
        self.message = message
        self.error_code = error_code or self.code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(BaseApplicationError):
    """数据验证异常"""
    code = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """支付金额无效"""
    code = "INVALID_AMOUNT"


class AuthenticationError(BaseApplicationError):
    """认证相关异常"""
    code = "AUTHENTICATION_REQUIRED"


class AuthorizationError(BaseApplicationError):
    """授权相关异常

    对所有越权请求返回统一的提示，不透露资源是否存在。
    """
    code = "PERMISSION_DENIED"

    def __init__(self, message: str = "无权执行此操作"):
        super().__init__(message)


class NotFoundError(BaseApplicationError):
    """资源不存在"""
    code = "RESOURCE_NOT_FOUND"

    def __init__(self, resource: str, resource_id: Any = None):
        super().__init__(
            f"{resource}不存在",
            details={"resource": resource, "id": resource_id},
        )


class StateConflictError(BaseApplicationError):
    """业务规则冲突"""
    code = "BUSINESS_RULE_VIOLATION"


class ProfileIncompleteError(StateConflictError):
    """用户资料不完整"""
    code = "PROFILE_INCOMPLETE"

    def __init__(self, missing: List[str]):
        super().__init__(
            "下单前请先完善姓名和手机号",
            details={"missing_fields": missing},
        )


class MultiRestaurantCartError(StateConflictError):
    """购物车包含多个餐厅的商品"""
    code = "MULTI_RESTAURANT_CART"

    def __init__(self, restaurant_ids: Iterable[int]):
        super().__init__(
            "一个订单只能包含同一家餐厅的商品，请分别下单",
            details={"restaurant_ids": sorted(restaurant_ids)},
        )


class SelectionIncompleteError(StateConflictError):
    """未选择配送日或配送楼宇"""
    code = "SELECTION_INCOMPLETE"

    def __init__(self, missing: List[str]):
        super().__init__("请选择配送日和配送楼宇", details={"missing": missing})


class IneligibleItemsError(StateConflictError):
    """部分商品在所选配送日或楼宇不可配送"""
    code = "INELIGIBLE_ITEMS"

    def __init__(self, items: List[Dict[str, Any]]):
        super().__init__(
            "部分商品在所选配送日或楼宇不可配送",
            details={"ineligible_items": items},
        )


class ItemUnavailableError(StateConflictError):
    """商品已下架或不存在"""
    code = "ITEM_UNAVAILABLE"

    def __init__(self, lunchbox_ids: List[int]):
        super().__init__(
            "部分商品已下架，请刷新购物车",
            details={"lunchbox_ids": lunchbox_ids},
        )


class TotalsMismatchError(StateConflictError):
    """客户端金额与服务端重新计算的金额不一致"""
    code = "TOTALS_MISMATCH"


class PaymentNotConfirmedError(StateConflictError):
    """支付未确认或金额不符"""
    code = "PAYMENT_NOT_CONFIRMED"


class InvalidStatusTransitionError(StateConflictError):
    """订单状态流转非法"""
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: str, target: str):
        super().__init__(
            f"订单状态不能从 {current} 变更为 {target}",
            details={"current": current, "target": target},
        )


class PartialFailureError(StateConflictError):
    """批量操作部分失败"""
    code = "PARTIAL_FAILURE"


class PersistenceError(BaseApplicationError):
    """数据库相关异常"""
    code = "PERSISTENCE_ERROR"


class ExternalServiceError(BaseApplicationError):
    """外部服务（支付机构）异常"""
    code = "EXTERNAL_SERVICE_ERROR"
