"""
模拟支付网关，用于开发和测试
在进程内模拟支付机构；客户端与支付机构之间的确认支付步骤用 confirm() 模拟
"""

from typing import Dict, List
from uuid import uuid4

from ...core.exceptions import ExternalServiceError
from .port import PaymentGateway, PaymentIntent, PaymentIntentNotFound


class FakeGateway(PaymentGateway):
    """可配置成功或失败的模拟网关，记录每次调用"""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "支付服务暂不可用"
        self.intents: Dict[str, PaymentIntent] = {}
        self.calls: List[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "支付服务暂不可用") -> None:
        """运行时切换网关行为"""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_intent(
        self,
        amount_minor_units: int,
        currency: str,
        metadata: Dict[str, str] = None,
    ) -> PaymentIntent:
        self.calls.append({
            "method": "create_intent",
            "amount": amount_minor_units,
            "currency": currency,
        })
        if not self.should_succeed:
            raise ExternalServiceError(self.failure_reason)

        intent_id = f"pi_fake_{uuid4().hex[:16]}"
        intent = PaymentIntent(
            id=intent_id,
            client_secret=f"{intent_id}_secret_{uuid4().hex[:12]}",
            amount=amount_minor_units,
            currency=currency,
            status="requires_payment_method",
            metadata=dict(metadata or {}),
        )
        self.intents[intent_id] = intent
        return intent

    def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        self.calls.append({"method": "retrieve_intent", "intent_id": intent_id})
        if not self.should_succeed:
            raise ExternalServiceError(self.failure_reason)
        try:
            return self.intents[intent_id]
        except KeyError:
            raise PaymentIntentNotFound(intent_id)

    def confirm(self, intent_id: str, succeed: bool = True) -> PaymentIntent:
        """模拟客户在客户端确认支付"""
        intent = self.intents[intent_id]
        status = "succeeded" if succeed else "requires_payment_method"
        confirmed = PaymentIntent(
            id=intent.id,
            client_secret=intent.client_secret,
            amount=intent.amount,
            currency=intent.currency,
            status=status,
            metadata=intent.metadata,
        )
        self.intents[intent_id] = confirmed
        return confirmed
