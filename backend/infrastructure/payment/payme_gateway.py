"""Payme 체크아웃 제공자

Payme 는 상태 변경을 자체 웹훅으로 통지하므로 조회/취소는 로컬 정책만 반환한다.
"""
import base64
import json
from decimal import Decimal, ROUND_HALF_UP

from loguru import logger

from config import PaymeConfig
from application.ports.payment_provider import PaymentProvider, GatewayResult, ProviderPaymentStatus


class PaymeGateway(PaymentProvider):
    def __init__(self, config: PaymeConfig):
        self.config = config

    async def create_payment(self, order_id: str, amount: Decimal) -> GatewayResult:
        # 금액은 티인(숨 * 100) 단위
        amount_in_tiyin = int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        params = {
            "merchant_id": self.config.merchant_id,
            "amount": amount_in_tiyin,
            "account": {"order_id": order_id},
            "return_url": self.config.callback_url,
        }
        encoded = base64.b64encode(json.dumps(params).encode()).decode()
        payment_url = f"{self.config.checkout_url}/{encoded}"
        logger.debug(f"Payme 결제 URL 생성: {order_id}")
        return GatewayResult.ok(payment_url=payment_url, transaction_id=order_id)

    async def check_payment(self, transaction_id: str) -> ProviderPaymentStatus:
        return ProviderPaymentStatus(status="pending", transaction_id=transaction_id)

    async def cancel_payment(self, transaction_id: str) -> bool:
        logger.debug(f"Payme 결제 취소 요청: {transaction_id}")
        return True
