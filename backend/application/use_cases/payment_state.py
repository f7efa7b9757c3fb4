"""결제 상태 전이: 결제/주문/원장을 하나의 작업 단위에서 함께 변경한다"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from domain.enums import PaymentStatus, TransactionType, TransactionStatus
from domain.entities.payment import ensure_transition, order_status_for, ledger_status_for
from domain.exceptions import InvalidPaymentTransitionError, PaymentNotFoundError, ProviderError
from application.ports.payment_provider import PaymentProvider
from infrastructure.persistence.database import unit_of_work
from infrastructure.persistence.models.order import Order
from infrastructure.persistence.models.payment import Payment
from infrastructure.persistence.repositories import (
    OrderRepository, PaymentRepository, TransactionRepository,
)


async def apply_transition(session: AsyncSession, payment: Payment, target: PaymentStatus,
                           description: str, metadata: Optional[Dict[str, Any]] = None) -> Order:
    """payment 를 target 상태로 전이하고 주문 상태와 원장을 맞춘다.

    호출 측 작업 단위 안에서만 호출해야 한다. 동시 변경으로 결제 상태가 달라졌으면
    InvalidPaymentTransitionError.
    """
    current = payment.status
    ensure_transition(current, target)

    orders = OrderRepository(session)
    payments = PaymentRepository(session)
    ledger = TransactionRepository(session)

    extra = {"deleted_at": datetime.utcnow()} if target == PaymentStatus.CANCELLED else {}
    if not await payments.compare_and_set_status(payment.id, current, target, **extra):
        raise InvalidPaymentTransitionError(current.value, target.value)

    order = await session.get(Order, payment.order_id)
    new_order_status = order_status_for(target, order.status)
    if new_order_status != order.status:
        await orders.set_status(order, new_order_status)

    if current == PaymentStatus.SUCCESS:
        # 환불: 원 결제 기록은 그대로 두고 REFUND 를 추가
        await ledger.append(user_id=order.user_id, order_id=order.id, payment_id=payment.id,
                            type=TransactionType.REFUND, status=TransactionStatus.SUCCESS,
                            amount=Decimal(payment.amount), description=description, metadata=metadata)
    else:
        status = ledger_status_for(target)
        resolved = await ledger.resolve_pending(payment.id, status)
        if not resolved:
            await ledger.append(user_id=order.user_id, order_id=order.id, payment_id=payment.id,
                                type=TransactionType.PAYMENT, status=status,
                                amount=Decimal(payment.amount), description=description, metadata=metadata)

    logger.info(f"결제 상태 변경: payment={payment.id} {current.value} -> {target.value}, "
                f"order={order.id} {order.status.value}")
    return order


async def reverse_payment(session_factory: async_sessionmaker, provider: PaymentProvider,
                          payment_id: int, provider_reference: Optional[str],
                          description: str, metadata: Optional[Dict[str, Any]] = None) -> Payment:
    """완료된 결제 취소(환불). 제공자 확인 전에는 로컬 상태를 바꾸지 않는다"""
    async with unit_of_work(session_factory) as session:
        payment = await PaymentRepository(session).get(payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        if payment.status != PaymentStatus.SUCCESS:
            raise InvalidPaymentTransitionError(payment.status.value, PaymentStatus.CANCELLED.value)

    if provider.is_remote and not await provider.cancel_payment(provider_reference or ""):
        raise ProviderError("결제 취소에 실패했습니다. 결제사 취소 조건을 확인하세요.")

    async with unit_of_work(session_factory) as session:
        payment = await PaymentRepository(session).get(payment_id, for_update=True)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        await apply_transition(session, payment, PaymentStatus.CANCELLED, description, metadata)
    return payment
