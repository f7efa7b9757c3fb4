"""Click PREPARE/COMPLETE 콜백 유스케이스

게이트웨이는 자신의 응답 형식만 이해하므로 모든 경로는 예외 대신 응답 코드를 반환한다.
주문/결제/원장 변경은 각 단계마다 하나의 작업 단위에서 커밋되거나 전부 롤백된다.
"""
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Optional, Dict, Any

from loguru import logger
from sqlalchemy.ext.asyncio import async_sessionmaker

from domain.enums import (
    ClickErrorCode, OrderStatus, PaymentMethod, PaymentStatus, TransactionType, TransactionStatus,
)
from domain.entities.payment import ensure_transition
from infrastructure.payment.signature import ClickSignatureVerifier
from infrastructure.persistence.database import unit_of_work
from infrastructure.persistence.repositories import (
    OrderRepository, PaymentRepository, TransactionRepository,
)

ACTION_PREPARE = 0
ACTION_COMPLETE = 1


@dataclass
class ClickCallbackInput:
    click_trans_id: int
    service_id: int
    click_paydoc_id: int
    merchant_trans_id: str
    amount: Decimal
    action: int
    error: int
    error_note: str
    sign_time: str
    sign_string: str
    merchant_prepare_id: Optional[int] = None


@dataclass
class PrepareOutput:
    click_trans_id: int
    merchant_trans_id: str
    merchant_prepare_id: int
    error: int
    error_note: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CompleteOutput:
    click_trans_id: int
    merchant_trans_id: str
    merchant_confirm_id: int
    error: int
    error_note: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ClickCallbackUseCase:
    def __init__(self, session_factory: async_sessionmaker, verifier: ClickSignatureVerifier,
                 amount_tolerance: Decimal = Decimal("0.01")):
        self._session_factory = session_factory
        self._verifier = verifier
        self._tolerance = amount_tolerance

    def _signature_valid(self, dto: ClickCallbackInput) -> bool:
        valid = self._verifier.verify(dto.click_trans_id, dto.service_id, dto.merchant_trans_id,
                                      dto.amount, dto.action, dto.sign_time, dto.sign_string)
        if not valid:
            logger.warning(f"Click 서명 불일치: order={dto.merchant_trans_id} trans={dto.click_trans_id}")
        return valid

    def _amount_matches(self, total: Decimal, amount: Decimal) -> bool:
        return abs(Decimal(total) - Decimal(amount)) <= self._tolerance

    # ==================== PREPARE ====================

    async def prepare(self, dto: ClickCallbackInput) -> PrepareOutput:
        """PREPARE: 결제 전 주문 검증 및 대기 결제 등록"""
        logger.info(f"Click PREPARE 처리: {dto.merchant_trans_id}")
        try:
            return await self._prepare(dto)
        except Exception:
            logger.exception(f"Click PREPARE 처리 실패: {dto.merchant_trans_id}")
            return self._prepare_reply(dto, ClickErrorCode.UPDATE_FAILED, "Failed to update payment")

    def _prepare_reply(self, dto: ClickCallbackInput, code: ClickErrorCode, note: str,
                       prepare_id: int = 0) -> PrepareOutput:
        return PrepareOutput(click_trans_id=dto.click_trans_id, merchant_trans_id=dto.merchant_trans_id,
                             merchant_prepare_id=prepare_id, error=int(code), error_note=note)

    async def _prepare(self, dto: ClickCallbackInput) -> PrepareOutput:
        if not self._signature_valid(dto):
            return self._prepare_reply(dto, ClickErrorCode.SIGN_CHECK_FAILED, "Invalid signature")

        async with unit_of_work(self._session_factory) as session:
            orders = OrderRepository(session)
            payments = PaymentRepository(session)
            ledger = TransactionRepository(session)

            order = await orders.get(dto.merchant_trans_id, for_update=True)
            if order is None:
                logger.error(f"주문을 찾을 수 없음: {dto.merchant_trans_id}")
                return self._prepare_reply(dto, ClickErrorCode.ORDER_NOT_FOUND, "Order not found")

            if order.status != OrderStatus.PENDING:
                logger.error(f"주문 상태가 PENDING 이 아님: {order.status.value}")
                return self._prepare_reply(dto, ClickErrorCode.ALREADY_PAID,
                                           f"Order already {order.status.value}")

            if not self._amount_matches(order.total, dto.amount):
                logger.error(f"금액 불일치. 기대값: {order.total}, 요청값: {dto.amount}")
                return self._prepare_reply(dto, ClickErrorCode.INCORRECT_AMOUNT, "Incorrect amount")

            payment = await payments.get_by_order(order.id, for_update=True)
            if payment is not None and payment.status == PaymentStatus.SUCCESS:
                logger.error(f"이미 완료된 결제: {payment.id}")
                return self._prepare_reply(dto, ClickErrorCode.ALREADY_PAID,
                                           "Payment already completed", payment.prepare_id)
            if payment is not None and payment.status != PaymentStatus.PENDING:
                logger.error(f"종료 상태의 결제: {payment.id} - {payment.status.value}")
                return self._prepare_reply(dto, ClickErrorCode.ALREADY_PAID,
                                           f"Payment already {payment.status.value}")

            if payment is None:
                payment = await payments.add(order_id=order.id, amount=dto.amount,
                                             method=PaymentMethod.CLICK, status=PaymentStatus.PENDING,
                                             external_transaction_id=str(dto.click_trans_id))
            else:
                payment.external_transaction_id = str(dto.click_trans_id)
                await session.flush()

            await ledger.append(
                user_id=order.user_id, order_id=order.id, payment_id=payment.id,
                type=TransactionType.PAYMENT, status=TransactionStatus.PENDING, amount=dto.amount,
                description="Click PREPARE request received",
                metadata={"click_trans_id": dto.click_trans_id, "click_paydoc_id": dto.click_paydoc_id,
                          "action": dto.action, "sign_time": dto.sign_time},
            )
            return self._prepare_reply(dto, ClickErrorCode.SUCCESS, "Success", payment.prepare_id)

    # ==================== COMPLETE ====================

    async def complete(self, dto: ClickCallbackInput) -> CompleteOutput:
        """COMPLETE: 결제 확정 또는 실패 기록"""
        logger.info(f"Click COMPLETE 처리: {dto.merchant_trans_id}")
        try:
            return await self._complete(dto)
        except Exception:
            logger.exception(f"Click COMPLETE 처리 실패: {dto.merchant_trans_id}")
            return self._complete_reply(dto, ClickErrorCode.UPDATE_FAILED, "Failed to update payment")

    def _complete_reply(self, dto: ClickCallbackInput, code, note: str,
                        confirm_id: int = 0) -> CompleteOutput:
        return CompleteOutput(click_trans_id=dto.click_trans_id, merchant_trans_id=dto.merchant_trans_id,
                              merchant_confirm_id=confirm_id, error=int(code), error_note=note)

    async def _complete(self, dto: ClickCallbackInput) -> CompleteOutput:
        if not self._signature_valid(dto):
            return self._complete_reply(dto, ClickErrorCode.SIGN_CHECK_FAILED, "Invalid signature")

        async with unit_of_work(self._session_factory) as session:
            orders = OrderRepository(session)
            payments = PaymentRepository(session)
            ledger = TransactionRepository(session)

            order = await orders.get(dto.merchant_trans_id, for_update=True)
            if order is None:
                return self._complete_reply(dto, ClickErrorCode.ORDER_NOT_FOUND, "Order not found")

            # 같은 주문에 대한 동시 COMPLETE 는 결제 행에서 직렬화된다
            payment = await payments.get_by_order(order.id, for_update=True)
            if payment is None:
                return self._complete_reply(dto, ClickErrorCode.TRANSACTION_NOT_FOUND, "Payment not found")

            if payment.status == PaymentStatus.SUCCESS:
                logger.info(f"이미 완료된 결제: {payment.id}")
                return self._complete_reply(dto, ClickErrorCode.SUCCESS, "Already paid", payment.prepare_id)

            if dto.merchant_prepare_id is not None and dto.merchant_prepare_id != payment.prepare_id:
                logger.error(f"prepare id 불일치: {dto.merchant_prepare_id} != {payment.prepare_id}")
                return self._complete_reply(dto, ClickErrorCode.TRANSACTION_NOT_FOUND, "Transaction does not exist")

            if dto.action != ACTION_COMPLETE:
                logger.error(f"잘못된 action: {dto.action}")
                return self._complete_reply(dto, ClickErrorCode.ACTION_NOT_FOUND, "Invalid action")

            if not self._amount_matches(order.total, dto.amount):
                logger.error(f"금액 불일치. 기대값: {order.total}, 요청값: {dto.amount}")
                return self._complete_reply(dto, ClickErrorCode.INCORRECT_AMOUNT, "Incorrect amount")

            if payment.status == PaymentStatus.FAILED and dto.error < 0:
                # 실패 통지 재전송: 이미 기록됨
                return self._complete_reply(dto, dto.error, dto.error_note)

            if payment.status != PaymentStatus.PENDING:
                return self._complete_reply(dto, ClickErrorCode.ALREADY_PAID,
                                            f"Payment already {payment.status.value}")

            if dto.error < 0:
                logger.error(f"Click 오류: {dto.error} - {dto.error_note}")
                await self._record_failure(payments, ledger, order, payment, dto)
                return self._complete_reply(dto, dto.error, dto.error_note)

            if order.status != OrderStatus.PENDING:
                return self._complete_reply(dto, ClickErrorCode.ALREADY_PAID,
                                            f"Order already {order.status.value}")

            ensure_transition(payment.status, PaymentStatus.SUCCESS)
            if not await payments.compare_and_set_status(payment.id, PaymentStatus.PENDING,
                                                         PaymentStatus.SUCCESS):
                await session.refresh(payment)
                if payment.status == PaymentStatus.SUCCESS:
                    return self._complete_reply(dto, ClickErrorCode.SUCCESS, "Already paid",
                                                payment.prepare_id)
                return self._complete_reply(dto, ClickErrorCode.ALREADY_PAID,
                                            f"Payment already {payment.status.value}")

            await orders.set_status(order, OrderStatus.PAID)
            await ledger.append(
                user_id=order.user_id, order_id=order.id, payment_id=payment.id,
                type=TransactionType.PAYMENT, status=TransactionStatus.SUCCESS, amount=dto.amount,
                description="Click payment completed successfully",
                metadata={"click_trans_id": dto.click_trans_id, "click_paydoc_id": dto.click_paydoc_id,
                          "merchant_prepare_id": dto.merchant_prepare_id},
            )

        logger.info(f"결제 완료: order={order.id} payment={payment.id}")
        return self._complete_reply(dto, ClickErrorCode.SUCCESS, "Success", payment.prepare_id)

    async def _record_failure(self, payments: PaymentRepository, ledger: TransactionRepository,
                              order, payment, dto: ClickCallbackInput) -> None:
        ensure_transition(payment.status, PaymentStatus.FAILED)
        await payments.compare_and_set_status(payment.id, PaymentStatus.PENDING, PaymentStatus.FAILED)
        await ledger.append(
            user_id=order.user_id, order_id=order.id, payment_id=payment.id,
            type=TransactionType.PAYMENT, status=TransactionStatus.FAILED, amount=dto.amount,
            description=f"Click COMPLETE failed: {dto.error_note}",
            metadata={"click_trans_id": dto.click_trans_id, "error": dto.error,
                      "error_note": dto.error_note},
        )
