"""Click 인보이스 / 카드 토큰 결제 유스케이스"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from domain.enums import (
    OrderStatus, PaymentMethod, PaymentStatus, TransactionType, TransactionStatus,
)
from domain.entities.payment import can_transition
from domain.exceptions import (
    DomainError, OrderNotFoundError, OrderNotPendingError, PaymentAlreadyExistsError, PaymentNotFoundError,
    CardNotVerifiedError, ProviderError, AmountMismatchError,
)
from application.use_cases.payment_state import apply_transition, reverse_payment
from infrastructure.payment.click_gateway import ClickGateway
from infrastructure.persistence.database import unit_of_work
from infrastructure.persistence.models.order import Order
from infrastructure.persistence.models.payment import Payment
from infrastructure.persistence.repositories import (
    OrderRepository, PaymentRepository, TransactionRepository, SavedCardRepository,
)

# invoice_status 코드 -> 결제 상태
INVOICE_STATUS_MAP = {1: PaymentStatus.SUCCESS, -99: PaymentStatus.CANCELLED}

PROVIDER_STATUS_MAP = {
    "success": PaymentStatus.SUCCESS,
    "failed": PaymentStatus.FAILED,
    "cancelled": PaymentStatus.CANCELLED,
}


class ClickPaymentUseCase:
    def __init__(self, session_factory: async_sessionmaker, gateway: ClickGateway,
                 amount_tolerance: Decimal = Decimal("0.01")):
        self._session_factory = session_factory
        self._gateway = gateway
        self._tolerance = amount_tolerance

    async def _payable_order(self, session: AsyncSession, order_id: str, user_id: int,
                             amount: Decimal, for_update: bool = False) -> Order:
        """결제 가능한 주문: 본인 주문, 결제 없음, PENDING"""
        order = await OrderRepository(session).get(order_id, user_id=user_id, for_update=for_update)
        if order is None:
            raise OrderNotFoundError(order_id)
        if await PaymentRepository(session).get_by_order(order.id, for_update=for_update) is not None:
            raise PaymentAlreadyExistsError()
        if order.status != OrderStatus.PENDING:
            raise OrderNotPendingError(order.status.value)
        if abs(Decimal(order.total) - Decimal(amount)) > self._tolerance:
            raise AmountMismatchError(order.total, amount)
        return order

    async def _ensure_owner(self, external_id: str, user_id: Optional[int]) -> None:
        """일반 사용자는 본인 주문의 Click 결제만 조회/동기화할 수 있다. 관리자는 user_id=None"""
        if user_id is None:
            return
        async with unit_of_work(self._session_factory) as session:
            payment = await PaymentRepository(session).get_by_external_id(external_id, PaymentMethod.CLICK)
            order = None
            if payment is not None:
                order = await OrderRepository(session).get(payment.order_id, user_id=user_id)
        if order is None:
            raise PaymentNotFoundError(external_id)

    # ==================== 인보이스 ====================

    async def create_invoice(self, user_id: int, order_id: str, amount: Decimal,
                             phone_number: str) -> Dict[str, Any]:
        """인보이스 생성: 사용자에게 결제 SMS 발송"""
        logger.debug(f"Click 인보이스 생성: order={order_id}")
        async with unit_of_work(self._session_factory) as session:
            await self._payable_order(session, order_id, user_id, amount)

        result = await self._gateway.create_invoice(order_id, amount, phone_number)
        if not result.success:
            raise ProviderError(result.error or "Click 인보이스 생성에 실패했습니다.")
        invoice_id = result.get("invoice_id")

        async with unit_of_work(self._session_factory) as session:
            order = await self._payable_order(session, order_id, user_id, amount, for_update=True)
            payment = await PaymentRepository(session).add(
                order_id=order.id, amount=amount, method=PaymentMethod.CLICK,
                status=PaymentStatus.PENDING, external_transaction_id=str(invoice_id))
            await TransactionRepository(session).append(
                user_id=user_id, order_id=order.id, payment_id=payment.id,
                type=TransactionType.PAYMENT, status=TransactionStatus.PENDING, amount=amount,
                description="Click invoice created",
                metadata={"invoice_id": invoice_id, "phone_number": phone_number})

        logger.info(f"Click 인보이스 생성 완료: order={order_id} invoice={invoice_id}")
        return {"success": True, "payment": payment, "invoice_id": invoice_id,
                "message": "인보이스가 생성되었습니다. SMS 로 결제를 완료해주세요."}

    async def check_invoice_status(self, invoice_id: int, user_id: Optional[int] = None) -> Dict[str, Any]:
        """인보이스 상태 조회 및 동기화. user_id 가 있으면 본인 주문의 인보이스만 허용"""
        await self._ensure_owner(str(invoice_id), user_id)
        result = await self._gateway.check_invoice_status(invoice_id)
        if not result.success:
            raise ProviderError(result.error or "인보이스 상태 조회에 실패했습니다.")

        async with unit_of_work(self._session_factory) as session:
            payment = await PaymentRepository(session).get_by_external_id(
                str(invoice_id), PaymentMethod.CLICK, for_update=True)
            target = INVOICE_STATUS_MAP.get(result.get("status"))
            if payment is not None and target is not None:
                await self._sync(session, payment, target, "Click invoice status synced",
                                 {"invoice_id": invoice_id, "invoice_status": result.get("status")})

        return {"success": True, "invoice_id": invoice_id, "status": result.get("status"),
                "status_note": result.get("status_note"), "payment": payment}

    async def _sync(self, session: AsyncSession, payment, target: PaymentStatus,
                    description: str, metadata: Dict[str, Any]) -> None:
        """제공자 상태를 로컬 결제에 반영. 상태 머신이 허용하지 않으면 건너뛴다"""
        if payment.status == target:
            return
        # SUCCESS -> CANCELLED 는 reversal 경로 전용
        reversal = payment.status == PaymentStatus.SUCCESS and target == PaymentStatus.CANCELLED
        if reversal or not can_transition(payment.status, target):
            logger.warning(f"결제 상태 동기화 생략: payment={payment.id} "
                           f"{payment.status.value} -> {target.value}")
            return
        await apply_transition(session, payment, target, description, metadata)

    # ==================== 카드 토큰 결제 ====================

    async def pay_with_token(self, user_id: int, card_token: str, order_id: str,
                             amount: Decimal) -> Dict[str, Any]:
        logger.debug(f"카드 토큰 결제: order={order_id}")
        async with unit_of_work(self._session_factory) as session:
            await self._payable_order(session, order_id, user_id, amount)
            card = await SavedCardRepository(session).find(user_id, card_token, active_only=True)
            if card is None:
                raise CardNotVerifiedError()

        result = await self._gateway.payment_with_token(card_token, amount, order_id)
        if not result.success:
            raise ProviderError(result.error or "결제에 실패했습니다.")
        confirmed = result.get("payment_status") == 1
        provider_payment_id = result.get("payment_id")

        try:
            payment = await self._record_token_payment(user_id, card_token, order_id, amount,
                                                       confirmed, provider_payment_id)
        except DomainError as e:
            # 결제사에서는 승인됐지만 로컬 기록 불가: 보상 취소 시도, 실패 시 대사 대상
            logger.error(f"토큰 결제 기록 실패: order={order_id} click_payment={provider_payment_id} - {e}")
            if provider_payment_id is not None:
                if await self._gateway.cancel_payment(str(provider_payment_id)):
                    logger.info(f"토큰 결제 보상 취소 완료: click_payment={provider_payment_id}")
                else:
                    logger.error(f"토큰 결제 보상 취소 실패, 수동 대사 필요: click_payment={provider_payment_id}")
            raise

        logger.info(f"카드 토큰 결제 {'완료' if confirmed else '처리 중'}: order={order_id}")
        return {"success": True, "payment": payment,
                "message": "결제가 완료되었습니다." if confirmed else "결제 처리 중입니다."}

    async def _record_token_payment(self, user_id: int, card_token: str, order_id: str, amount: Decimal,
                                    confirmed: bool, provider_payment_id) -> Payment:
        async with unit_of_work(self._session_factory) as session:
            order = await self._payable_order(session, order_id, user_id, amount, for_update=True)
            card = await SavedCardRepository(session).find(user_id, card_token, active_only=True)
            if card is None:
                raise CardNotVerifiedError()
            payment = await PaymentRepository(session).add(
                order_id=order.id, amount=amount, method=PaymentMethod.CLICK,
                status=PaymentStatus.SUCCESS if confirmed else PaymentStatus.PENDING,
                external_transaction_id=str(provider_payment_id) if provider_payment_id is not None else None)
            await TransactionRepository(session).append(
                user_id=user_id, order_id=order.id, payment_id=payment.id,
                type=TransactionType.PAYMENT,
                status=TransactionStatus.SUCCESS if confirmed else TransactionStatus.PENDING,
                amount=amount, description="Payment via Click card token",
                metadata={"payment_id": provider_payment_id, "card_token": card_token,
                          "card_number_masked": card.card_number_masked})
            card.last_used_at = datetime.utcnow()
            if confirmed:
                await OrderRepository(session).set_status(order, OrderStatus.PAID)
        return payment

    # ==================== 결제 조회 / 취소 ====================

    async def check_payment_status(self, payment_id: str, user_id: Optional[int] = None) -> Dict[str, Any]:
        await self._ensure_owner(payment_id, user_id)
        status = await self._gateway.check_payment(payment_id)

        async with unit_of_work(self._session_factory) as session:
            payment = await PaymentRepository(session).get_by_external_id(
                payment_id, PaymentMethod.CLICK, for_update=True)
            target = PROVIDER_STATUS_MAP.get(status.status)
            if status.error:
                logger.warning(f"Click 결제 조회 실패, 동기화 생략: {payment_id} - {status.error}")
            elif payment is not None and target is not None:
                await self._sync(session, payment, target, "Click payment status synced",
                                 {"click_payment_id": payment_id, "status": status.status})

        return {"success": status.error is None, "payment_id": payment_id,
                "status": status.status, "payment": payment}

    async def check_payment_by_order(self, order_id: str, date: str,
                                     user_id: Optional[int] = None) -> Dict[str, Any]:
        logger.debug(f"주문별 결제 조회: order={order_id} date={date}")
        if user_id is not None:
            async with unit_of_work(self._session_factory) as session:
                if await OrderRepository(session).get(order_id, user_id=user_id) is None:
                    raise OrderNotFoundError(order_id)
        result = await self._gateway.check_payment_by_merchant_trans_id(order_id, date)
        if not result.success:
            raise ProviderError(result.error or "결제 조회에 실패했습니다.")

        async with unit_of_work(self._session_factory) as session:
            payment = await PaymentRepository(session).get_by_order(order_id)
            if payment is not None and payment.method != PaymentMethod.CLICK:
                payment = None

        return {"success": True, "order_id": order_id, "payment_id": result.get("payment_id"),
                "payment_status": result.get("payment_status"), "payment": payment}

    async def cancel_payment(self, payment_id: str) -> Dict[str, Any]:
        """Click 결제 취소(reversal): SUCCESS 결제만 가능"""
        logger.debug(f"Click 결제 취소: {payment_id}")
        async with unit_of_work(self._session_factory) as session:
            payment = await PaymentRepository(session).get_by_external_id(
                payment_id, PaymentMethod.CLICK, include_deleted=False)
            if payment is None:
                raise PaymentNotFoundError(payment_id)

        await reverse_payment(self._session_factory, self._gateway, payment.id, payment_id,
                              "Payment cancelled and refunded via Click",
                              {"click_payment_id": payment_id,
                               "cancelled_at": datetime.utcnow().isoformat()})
        return {"success": True, "message": "결제가 취소되었습니다."}
