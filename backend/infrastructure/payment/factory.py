"""결제 수단별 제공자 선택"""
from decimal import Decimal
from typing import Dict

from domain.enums import PaymentMethod
from domain.exceptions import UnsupportedPaymentMethodError
from application.ports.payment_provider import PaymentProvider, GatewayResult, ProviderPaymentStatus


class NullProvider(PaymentProvider):
    """현금/오프라인 카드: 외부 호출 없음"""
    is_remote = False

    async def create_payment(self, order_id: str, amount: Decimal) -> GatewayResult:
        return GatewayResult.ok(transaction_id=None, payment_url=None)

    async def check_payment(self, transaction_id: str) -> ProviderPaymentStatus:
        return ProviderPaymentStatus(status="pending", transaction_id=transaction_id)

    async def cancel_payment(self, transaction_id: str) -> bool:
        return True


class PaymentProviderFactory:
    def __init__(self, click: PaymentProvider, payme: PaymentProvider):
        self._null = NullProvider()
        self._providers: Dict[PaymentMethod, PaymentProvider] = {
            PaymentMethod.CASH: self._null,
            PaymentMethod.CARD: self._null,
            PaymentMethod.CLICK: click,
            PaymentMethod.PAYME: payme,
        }

    def get_provider(self, method: PaymentMethod) -> PaymentProvider:
        try:
            return self._providers[PaymentMethod(method)]
        except (KeyError, ValueError):
            raise UnsupportedPaymentMethodError(method) from None
