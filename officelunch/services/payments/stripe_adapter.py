"""
Stripe 支付网关
通过 stripe-python 创建和查询 PaymentIntent；确认支付由客户端凭 client secret 完成，不经过本服务
"""

from typing import Dict

import stripe

from ...core.exceptions import ExternalServiceError
from .port import PaymentGateway, PaymentIntent, PaymentIntentNotFound


def _to_intent(obj) -> PaymentIntent:
    metadata = getattr(obj, "metadata", None)
    return PaymentIntent(
        id=obj.id,
        client_secret=obj.client_secret,
        amount=int(obj.amount),
        currency=obj.currency,
        status=obj.status,
        metadata={str(k): str(v) for k, v in (metadata.items() if metadata else [])},
    )


class StripeGateway(PaymentGateway):
    """生产环境使用的 Stripe 网关"""

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key

    def create_intent(
        self,
        amount_minor_units: int,
        currency: str,
        metadata: Dict[str, str] = None,
    ) -> PaymentIntent:
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.api_key,
                amount=amount_minor_units,
                currency=currency,
                automatic_payment_methods={"enabled": True},
                metadata=metadata or {},
            )
        except stripe.StripeError as e:
            raise ExternalServiceError(
                "支付服务暂不可用，请重试",
                details={"gateway_error": str(e)[:120]},
            ) from e
        return _to_intent(intent)

    def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id, api_key=self.api_key)
        except stripe.InvalidRequestError as e:
            raise PaymentIntentNotFound(intent_id) from e
        except stripe.StripeError as e:
            raise ExternalServiceError(
                "支付服务暂不可用，请重试",
                details={"gateway_error": str(e)[:120]},
            ) from e
        return _to_intent(intent)
