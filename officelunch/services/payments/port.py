"""
支付机构接口
金额一律以最小货币单位（分）的整数传递，由支付服务在调用前完成校验，适配器不做换算
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict

# 视为已授权的支付状态（requires_capture 表示已授权待扣款）
AUTHORIZED_STATUSES = frozenset({"succeeded", "requires_capture"})


@dataclass(frozen=True)
class PaymentIntent:
    """支付机构返回的支付意向快照"""

    id: str
    client_secret: str
    amount: int
    currency: str
    status: str
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def is_authorized(self) -> bool:
        return self.status in AUTHORIZED_STATUSES


class PaymentGateway(ABC):
    """支付机构抽象接口"""

    @abstractmethod
    def create_intent(
        self,
        amount_minor_units: int,
        currency: str,
        metadata: Dict[str, str] = None,
    ) -> PaymentIntent:
        """申请固定金额的扣款授权"""
        ...

    @abstractmethod
    def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        """查询已创建意向的当前状态"""
        ...


class PaymentIntentNotFound(LookupError):
    """支付机构中不存在该意向ID"""
