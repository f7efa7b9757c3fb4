"""
SQLAlchemy 저장소

모든 메서드는 호출 측이 연 세션(작업 단위) 안에서 실행되며 커밋하지 않는다.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Tuple, Dict, Any

from sqlalchemy import select, update, func, desc, or_
from sqlalchemy.ext.asyncio import AsyncSession

from domain.enums import (
    PaymentMethod, PaymentStatus, OrderStatus, TransactionType, TransactionStatus,
)
from infrastructure.persistence.models.order import Order
from infrastructure.persistence.models.payment import Payment
from infrastructure.persistence.models.transaction import Transaction
from infrastructure.persistence.models.saved_card import SavedCard
from infrastructure.persistence.models.user import User


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


class OrderRepository:
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, order_id: str, user_id: Optional[int] = None,
                  for_update: bool = False) -> Optional[Order]:
        """삭제되지 않은 주문 조회"""
        stmt = select(Order).where(Order.id == order_id, Order.deleted_at.is_(None))
        if user_id is not None:
            stmt = stmt.where(Order.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def set_status(self, order: Order, status: OrderStatus) -> None:
        order.status = status
        order.updated_at = datetime.utcnow()
        await self._session.flush()


class PaymentRepository:
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, payment_id: int, for_update: bool = False) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.id == payment_id, Payment.deleted_at.is_(None))
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_order(self, order_id: str, for_update: bool = False) -> Optional[Payment]:
        """주문의 결제: 취소(soft delete)된 행도 포함 (주문당 1행 제약)"""
        stmt = select(Payment).where(Payment.order_id == order_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_external_id(self, external_id: str, method: PaymentMethod,
                                 include_deleted: bool = True,
                                 for_update: bool = False) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.external_transaction_id == external_id,
                                     Payment.method == method)
        if not include_deleted:
            stmt = stmt.where(Payment.deleted_at.is_(None))
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt.order_by(desc(Payment.id)).limit(1))
        return result.scalar_one_or_none()

    async def add(self, order_id: str, amount: Decimal, method: PaymentMethod,
                  status: PaymentStatus, external_transaction_id: Optional[str] = None) -> Payment:
        payment = Payment(order_id=order_id, amount=amount, method=method, status=status,
                          external_transaction_id=external_transaction_id)
        self._session.add(payment)
        await self._session.flush()
        return payment

    async def compare_and_set_status(self, payment_id: int, expected: PaymentStatus,
                                     target: PaymentStatus, **values) -> bool:
        """status 가 expected 인 경우에만 target 으로 변경. 변경 여부 반환"""
        result = await self._session.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == expected)
            .values(status=target, updated_at=datetime.utcnow(), **values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    async def list(self, page: int = 1, limit: int = 20,
                   search: Optional[str] = None) -> Tuple[List[Payment], int]:
        stmt = select(Payment).where(Payment.deleted_at.is_(None))
        if search:
            pattern = f"%{search}%"
            stmt = (stmt.join(Order, Order.id == Payment.order_id)
                    .join(User, User.id == Order.user_id)
                    .where(or_(User.full_name.ilike(pattern), User.phone_number.ilike(pattern))))
        total = (await self._session.execute(
            select(func.count()).select_from(stmt.subquery()))).scalar() or 0
        result = await self._session.execute(
            stmt.order_by(desc(Payment.created_at), desc(Payment.id))
            .offset((page - 1) * limit).limit(limit))
        return list(result.scalars().all()), total


class TransactionRepository:
    """원장: 추가 전용, 상태 필드만 갱신 가능"""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def append(self, user_id: int, order_id: str, payment_id: Optional[int],
                     type: TransactionType, status: TransactionStatus, amount: Decimal,
                     description: str, metadata: Optional[Dict[str, Any]] = None) -> Transaction:
        txn = Transaction(user_id=user_id, order_id=order_id, payment_id=payment_id,
                          type=type, status=status, amount=amount, description=description,
                          metadata_json=_jsonable(metadata) if metadata else None)
        self._session.add(txn)
        await self._session.flush()
        return txn

    async def resolve_pending(self, payment_id: int, status: TransactionStatus) -> int:
        """결제의 대기 중 PAYMENT 기록 상태 확정"""
        result = await self._session.execute(
            update(Transaction)
            .where(Transaction.payment_id == payment_id,
                   Transaction.type == TransactionType.PAYMENT,
                   Transaction.status == TransactionStatus.PENDING)
            .values(status=status, updated_at=datetime.utcnow())
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def list_by_order(self, order_id: str) -> List[Transaction]:
        result = await self._session.execute(
            select(Transaction).where(Transaction.order_id == order_id).order_by(Transaction.id))
        return list(result.scalars().all())


class SavedCardRepository:
    def __init__(self, session: AsyncSession):
        self._session = session

    async def find(self, user_id: int, card_token: str, active_only: bool = False) -> Optional[SavedCard]:
        stmt = select(SavedCard).where(SavedCard.user_id == user_id,
                                       SavedCard.card_token == card_token,
                                       SavedCard.deleted_at.is_(None))
        if active_only:
            stmt = stmt.where(SavedCard.is_active.is_(True))
        result = await self._session.execute(stmt.order_by(desc(SavedCard.id)).limit(1))
        return result.scalar_one_or_none()

    async def add(self, card: SavedCard) -> SavedCard:
        self._session.add(card)
        await self._session.flush()
        return card

    async def list_active(self, user_id: int) -> List[SavedCard]:
        result = await self._session.execute(
            select(SavedCard)
            .where(SavedCard.user_id == user_id, SavedCard.is_active.is_(True),
                   SavedCard.deleted_at.is_(None))
            .order_by(desc(SavedCard.last_used_at), desc(SavedCard.id)))
        return list(result.scalars().all())
