"""결제 상태 머신"""
from typing import Dict, FrozenSet

from domain.enums import OrderStatus, PaymentStatus, TransactionStatus
from domain.exceptions import InvalidPaymentTransitionError

# SUCCESS -> CANCELLED 는 환불(취소) 경로에서만 사용된다
ALLOWED_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.SUCCESS, PaymentStatus.FAILED, PaymentStatus.CANCELLED}),
    PaymentStatus.SUCCESS: frozenset({PaymentStatus.CANCELLED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.CANCELLED: frozenset(),
}


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: PaymentStatus, target: PaymentStatus) -> None:
    """허용되지 않는 전이이면 InvalidPaymentTransitionError"""
    if not can_transition(current, target):
        raise InvalidPaymentTransitionError(current.value, target.value)


def order_status_for(target: PaymentStatus, current: OrderStatus) -> OrderStatus:
    """결제 상태 변경에 따른 주문 상태. FAILED 는 주문을 건드리지 않는다."""
    if target == PaymentStatus.SUCCESS:
        return OrderStatus.PAID
    if target == PaymentStatus.CANCELLED:
        return OrderStatus.CANCELLED
    return current


def ledger_status_for(target: PaymentStatus) -> TransactionStatus:
    if target == PaymentStatus.SUCCESS:
        return TransactionStatus.SUCCESS
    if target in (PaymentStatus.FAILED, PaymentStatus.CANCELLED):
        return TransactionStatus.FAILED
    return TransactionStatus.PENDING
