"""
支付意向服务
向支付机构申请固定金额的扣款授权，返回仅用于客户端确认支付的 client secret；
下单时再向支付机构核实该意向已授权且金额与订单合计一致
"""

from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, Field

from ..config.settings import settings
from ..core.exceptions import InvalidAmountError, PaymentNotConfirmedError
from ..core.logging import logger
from ..core.money import to_cents, to_decimal
from .payments import PaymentGateway, PaymentIntent, PaymentIntentNotFound, get_gateway


class PaymentIntentResult(BaseModel):
    """支付意向创建结果"""
    client_secret: str = Field(..., description="客户端确认支付使用的密钥")
    payment_intent_id: str = Field(..., description="支付意向ID")
    amount: Decimal = Field(..., description="授权金额")
    currency: str = Field(..., description="币种")


class PaymentService:
    """支付服务，网关通过 get_gateway 获取以便测试替换"""

    def __init__(self, gateway: Optional[PaymentGateway] = None):
        self._gateway = gateway

    @property
    def gateway(self) -> PaymentGateway:
        return self._gateway or get_gateway()

    def create_payment_intent(
        self,
        amount,
        customer_id: Optional[int] = None,
    ) -> PaymentIntentResult:
        """
        创建支付意向

        Args:
            amount: 授权金额（Decimal，最多两位小数）
            customer_id: 下单用户，仅写入支付机构的 metadata

        Raises:
            InvalidAmountError: 金额不大于0或超过两位小数
            ExternalServiceError: 支付机构不可用
        """
        value = to_decimal(amount)
        if not value > 0:
            raise InvalidAmountError("支付金额必须大于0", details={"amount": str(amount)})
        minor_units = to_cents(value)

        metadata: Dict[str, str] = {}
        if customer_id is not None:
            metadata["customer_id"] = str(customer_id)

        intent = self.gateway.create_intent(minor_units, settings.currency, metadata)
        logger.info(
            "payment_intent_created",
            payment_intent_id=intent.id,
            amount_minor_units=minor_units,
            currency=settings.currency,
        )
        return PaymentIntentResult(
            client_secret=intent.client_secret,
            payment_intent_id=intent.id,
            amount=value,
            currency=settings.currency,
        )

    def verify_payment(
        self,
        payment_intent_id: Optional[str],
        expected_total,
        customer_id: Optional[int] = None,
    ) -> PaymentIntent:
        """
        核实支付意向已由支付机构授权，且金额和币种与订单一致

        Args:
            customer_id: 下单用户；给定时支付意向必须由该用户创建

        Raises:
            PaymentNotConfirmedError: 未提供、不存在、不属于下单用户、未授权或金额不符
            ExternalServiceError: 支付机构不可用
        """
        if not payment_intent_id:
            raise PaymentNotConfirmedError("请先完成支付")

        try:
            intent = self.gateway.retrieve_intent(payment_intent_id)
        except PaymentIntentNotFound:
            raise PaymentNotConfirmedError(
                "支付记录不存在", details={"payment_intent_id": payment_intent_id}
            )

        if customer_id is not None and intent.metadata.get("customer_id") != str(customer_id):
            logger.warning(
                "payment_intent_owner_mismatch",
                payment_intent_id=intent.id,
                customer_id=customer_id,
            )
            raise PaymentNotConfirmedError(
                "该支付不属于当前用户", details={"payment_intent_id": intent.id}
            )

        if not intent.is_authorized:
            raise PaymentNotConfirmedError(
                "支付尚未完成",
                details={"payment_intent_id": intent.id, "status": intent.status},
            )

        expected_minor_units = to_cents(expected_total)
        if intent.amount != expected_minor_units or intent.currency.lower() != settings.currency.lower():
            raise PaymentNotConfirmedError(
                "支付金额与订单金额不符",
                details={
                    "payment_intent_id": intent.id,
                    "authorized_minor_units": intent.amount,
                    "expected_minor_units": expected_minor_units,
                },
            )
        return intent


# 全局服务实例
payment_service = PaymentService()
