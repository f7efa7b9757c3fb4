"""결제 관리 유스케이스: 결제 수단별 제공자를 통해 생성/조회/상태 변경/취소"""
from decimal import Decimal
from typing import Optional, Dict, Any, List, Tuple

from loguru import logger
from sqlalchemy.ext.asyncio import async_sessionmaker

from domain.enums import (
    OrderStatus, PaymentMethod, PaymentStatus, TransactionType, TransactionStatus,
)
from domain.exceptions import (
    OrderNotFoundError, OrderNotPendingError, PaymentAlreadyExistsError, PaymentNotFoundError,
    InvalidPaymentTransitionError, ProviderError,
)
from application.use_cases.payment_state import apply_transition, reverse_payment
from infrastructure.payment.factory import PaymentProviderFactory
from infrastructure.persistence.database import unit_of_work
from infrastructure.persistence.models.payment import Payment
from infrastructure.persistence.repositories import (
    OrderRepository, PaymentRepository, TransactionRepository,
)


class PaymentUseCase:
    def __init__(self, session_factory: async_sessionmaker, providers: PaymentProviderFactory):
        self._session_factory = session_factory
        self._providers = providers

    async def create(self, order_id: str, amount: Decimal, method: PaymentMethod) -> Dict[str, Any]:
        """결제 생성. 오프라인 카드는 즉시 완료, 현금/외부 결제는 대기"""
        logger.debug(f"결제 생성: order={order_id} method={method.value}")
        provider = self._providers.get_provider(method)

        async with unit_of_work(self._session_factory) as session:
            order = await OrderRepository(session).get(order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            if await PaymentRepository(session).get_by_order(order.id) is not None:
                raise PaymentAlreadyExistsError()
            if order.status != OrderStatus.PENDING:
                raise OrderNotPendingError(order.status.value)

        result = await provider.create_payment(order_id, amount)
        if not result.success:
            raise ProviderError(f"결제 생성 실패: {result.error}")

        immediate = method == PaymentMethod.CARD
        status = PaymentStatus.SUCCESS if immediate else PaymentStatus.PENDING
        metadata = None
        if provider.is_remote:
            metadata = {"payment_url": result.get("payment_url"),
                        "external_transaction_id": result.get("transaction_id")}

        async with unit_of_work(self._session_factory) as session:
            orders = OrderRepository(session)
            payments = PaymentRepository(session)
            order = await orders.get(order_id, for_update=True)
            if order is None:
                raise OrderNotFoundError(order_id)
            if await payments.get_by_order(order.id, for_update=True) is not None:
                raise PaymentAlreadyExistsError()
            if order.status != OrderStatus.PENDING:
                raise OrderNotPendingError(order.status.value)

            payment = await payments.add(order_id=order.id, amount=amount, method=method, status=status)
            await TransactionRepository(session).append(
                user_id=order.user_id, order_id=order.id, payment_id=payment.id,
                type=TransactionType.PAYMENT,
                status=TransactionStatus.SUCCESS if immediate else TransactionStatus.PENDING,
                amount=amount,
                description=f"Payment {'completed' if immediate else 'initiated'} via {method.value}",
                metadata=metadata)
            if immediate:
                await orders.set_status(order, OrderStatus.PAID)

        return {"payment": payment, "payment_url": result.get("payment_url")}

    async def list(self, page: int = 1, limit: int = 20,
                   search: Optional[str] = None) -> Tuple[List[Payment], int]:
        async with unit_of_work(self._session_factory) as session:
            return await PaymentRepository(session).list(page=page, limit=limit, search=search)

    async def get(self, payment_id: int) -> Payment:
        async with unit_of_work(self._session_factory) as session:
            payment = await PaymentRepository(session).get(payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        return payment

    async def update_status(self, payment_id: int, status: Optional[PaymentStatus]) -> Payment:
        """관리자 상태 변경. 완료 결제 취소는 cancel() 과 동일하게 환불 경로를 탄다"""
        logger.debug(f"결제 상태 변경 요청: {payment_id} -> {status}")
        payment = await self.get(payment_id)
        if status is None or status == payment.status:
            return payment
        if status == PaymentStatus.CANCELLED:
            return await self.cancel(payment_id)

        async with unit_of_work(self._session_factory) as session:
            payment = await PaymentRepository(session).get(payment_id, for_update=True)
            if payment is None:
                raise PaymentNotFoundError(str(payment_id))
            await apply_transition(session, payment, status, f"Payment status updated to {status.value}")
        return payment

    async def cancel(self, payment_id: int) -> Payment:
        """결제 취소(soft delete). 완료(SUCCESS) 결제만 가능하며 제공자 취소 확인 후 환불 기록"""
        logger.debug(f"결제 취소: {payment_id}")
        payment = await self.get(payment_id)

        if payment.status != PaymentStatus.SUCCESS:
            raise InvalidPaymentTransitionError(payment.status.value, PaymentStatus.CANCELLED.value)

        provider = self._providers.get_provider(payment.method)
        return await reverse_payment(self._session_factory, provider, payment.id,
                                     payment.external_transaction_id,
                                     "Payment cancelled (refunded)")
