"""Click 인보이스 / 토큰 결제 / 결제 취소 유스케이스 테스트"""
from decimal import Decimal

import pytest

from domain.enums import (
    OrderStatus, PaymentMethod, PaymentStatus, TransactionType, TransactionStatus,
)
from domain.exceptions import (
    OrderNotFoundError, AmountMismatchError, PaymentAlreadyExistsError, ProviderError,
    CardNotVerifiedError, PaymentNotFoundError, InvalidPaymentTransitionError,
)
from application.ports.payment_provider import GatewayResult, ProviderPaymentStatus
from application.use_cases.click_payment import ClickPaymentUseCase
from infrastructure.persistence.database import unit_of_work
from infrastructure.persistence.models import Order, Payment, SavedCard
from infrastructure.persistence.repositories import PaymentRepository, TransactionRepository


@pytest.fixture
def gateway(mocker):
    gateway = mocker.Mock(is_remote=True)
    gateway.create_invoice = mocker.AsyncMock(return_value=GatewayResult.ok(invoice_id=777))
    gateway.check_invoice_status = mocker.AsyncMock(
        return_value=GatewayResult.ok(status=1, status_note="paid"))
    gateway.payment_with_token = mocker.AsyncMock(
        return_value=GatewayResult.ok(payment_id=555, payment_status=1))
    gateway.check_payment = mocker.AsyncMock(
        return_value=ProviderPaymentStatus(status="success", transaction_id="555"))
    gateway.cancel_payment = mocker.AsyncMock(return_value=True)
    return gateway


@pytest.fixture
def use_case(session_factory, gateway):
    return ClickPaymentUseCase(session_factory, gateway, amount_tolerance=Decimal("0.01"))


async def _state(session_factory, order_id):
    async with unit_of_work(session_factory) as session:
        order = await session.get(Order, order_id)
        payment = await PaymentRepository(session).get_by_order(order_id)
        ledger = await TransactionRepository(session).list_by_order(order_id)
    return order, payment, ledger


async def _active_card(session_factory, user, token="tok-1"):
    async with unit_of_work(session_factory) as session:
        session.add(SavedCard(user_id=user.id, card_token=token, card_number="8600 12** **** 1234",
                              card_number_masked="****1234", is_active=True))


# ==================== 인보이스 ====================

async def test_create_invoice(use_case, gateway, session_factory, make_user, make_order):
    user = await make_user()
    order = await make_order(user)

    result = await use_case.create_invoice(user.id, order.id, Decimal("100000"), "998901234567")

    assert result["invoice_id"] == 777
    gateway.create_invoice.assert_awaited_once_with(order.id, Decimal("100000"), "998901234567")
    order, payment, ledger = await _state(session_factory, order.id)
    assert payment.status == PaymentStatus.PENDING
    assert payment.method == PaymentMethod.CLICK
    assert payment.external_transaction_id == "777"
    assert order.status == OrderStatus.PENDING
    assert [(t.type, t.status) for t in ledger] == [(TransactionType.PAYMENT, TransactionStatus.PENDING)]


async def test_create_invoice_for_other_users_order(use_case, gateway, make_user, make_order):
    owner = await make_user()
    other = await make_user(phone_number="998907654321")
    order = await make_order(owner)

    with pytest.raises(OrderNotFoundError):
        await use_case.create_invoice(other.id, order.id, Decimal("100000"), "998901234567")
    gateway.create_invoice.assert_not_awaited()


async def test_create_invoice_amount_mismatch(use_case, make_user, make_order):
    user = await make_user()
    order = await make_order(user)

    with pytest.raises(AmountMismatchError):
        await use_case.create_invoice(user.id, order.id, Decimal("1000"), "998901234567")


async def test_create_invoice_twice(use_case, make_user, make_order):
    user = await make_user()
    order = await make_order(user)
    await use_case.create_invoice(user.id, order.id, Decimal("100000"), "998901234567")

    with pytest.raises(PaymentAlreadyExistsError):
        await use_case.create_invoice(user.id, order.id, Decimal("100000"), "998901234567")


async def test_create_invoice_provider_failure(use_case, gateway, session_factory, make_user, make_order):
    user = await make_user()
    order = await make_order(user)
    gateway.create_invoice.return_value = GatewayResult.fail("Timeout")

    with pytest.raises(ProviderError):
        await use_case.create_invoice(user.id, order.id, Decimal("100000"), "998901234567")

    _, payment, ledger = await _state(session_factory, order.id)
    assert payment is None
    assert ledger == []


async def test_check_invoice_status_syncs_paid_invoice(use_case, session_factory, make_user, make_order):
    user = await make_user()
    order = await make_order(user)
    await use_case.create_invoice(user.id, order.id, Decimal("100000"), "998901234567")

    result = await use_case.check_invoice_status(777)

    assert result["status"] == 1
    order, payment, ledger = await _state(session_factory, order.id)
    assert payment.status == PaymentStatus.SUCCESS
    assert order.status == OrderStatus.PAID
    assert [t.status for t in ledger] == [TransactionStatus.SUCCESS]


async def test_check_invoice_status_unknown_code_keeps_state(use_case, gateway, session_factory,
                                                             make_user, make_order):
    user = await make_user()
    order = await make_order(user)
    await use_case.create_invoice(user.id, order.id, Decimal("100000"), "998901234567")
    gateway.check_invoice_status.return_value = GatewayResult.ok(status=0, status_note="waiting")

    await use_case.check_invoice_status(777)

    _, payment, _ = await _state(session_factory, order.id)
    assert payment.status == PaymentStatus.PENDING


# ==================== 토큰 결제 ====================

async def test_pay_with_unverified_card_is_rejected(use_case, gateway, session_factory, make_user, make_order):
    user = await make_user()
    order = await make_order(user)
    async with unit_of_work(session_factory) as session:
        session.add(SavedCard(user_id=user.id, card_token="tok-1", card_number_masked="****1234",
                              is_active=False))

    with pytest.raises(CardNotVerifiedError):
        await use_case.pay_with_token(user.id, "tok-1", order.id, Decimal("100000"))

    gateway.payment_with_token.assert_not_awaited()
    _, payment, _ = await _state(session_factory, order.id)
    assert payment is None


async def test_pay_with_token_confirmed(use_case, session_factory, make_user, make_order):
    user = await make_user()
    order = await make_order(user)
    await _active_card(session_factory, user)

    result = await use_case.pay_with_token(user.id, "tok-1", order.id, Decimal("100000"))

    assert result["payment"].status == PaymentStatus.SUCCESS
    order, payment, ledger = await _state(session_factory, order.id)
    assert order.status == OrderStatus.PAID
    assert payment.external_transaction_id == "555"
    assert [t.status for t in ledger] == [TransactionStatus.SUCCESS]
    async with unit_of_work(session_factory) as session:
        card = await session.get(SavedCard, 1)
    assert card.last_used_at is not None


async def test_pay_with_token_processing(use_case, gateway, session_factory, make_user, make_order):
    user = await make_user()
    order = await make_order(user)
    await _active_card(session_factory, user)
    gateway.payment_with_token.return_value = GatewayResult.ok(payment_id=556, payment_status=0)

    await use_case.pay_with_token(user.id, "tok-1", order.id, Decimal("100000"))

    order, payment, _ = await _state(session_factory, order.id)
    assert payment.status == PaymentStatus.PENDING
    assert order.status == OrderStatus.PENDING


async def test_check_payment_status_provider_error_skips_sync(use_case, gateway, session_factory,
                                                              make_user, make_order):
    user = await make_user()
    order = await make_order(user)
    await _active_card(session_factory, user)
    gateway.payment_with_token.return_value = GatewayResult.ok(payment_id=555, payment_status=0)
    await use_case.pay_with_token(user.id, "tok-1", order.id, Decimal("100000"))
    gateway.check_payment.return_value = ProviderPaymentStatus(status="failed", transaction_id="555",
                                                               error="Timeout")

    result = await use_case.check_payment_status("555")

    assert result["success"] is False
    _, payment, _ = await _state(session_factory, order.id)
    assert payment.status == PaymentStatus.PENDING


async def test_check_payment_status_syncs_success(use_case, gateway, session_factory, make_user, make_order):
    user = await make_user()
    order = await make_order(user)
    await _active_card(session_factory, user)
    gateway.payment_with_token.return_value = GatewayResult.ok(payment_id=555, payment_status=0)
    await use_case.pay_with_token(user.id, "tok-1", order.id, Decimal("100000"))

    result = await use_case.check_payment_status("555")

    assert result["status"] == "success"
    order, payment, _ = await _state(session_factory, order.id)
    assert payment.status == PaymentStatus.SUCCESS
    assert order.status == OrderStatus.PAID


# ==================== 취소 ====================

async def _paid_by_token(use_case, session_factory, make_user, make_order):
    user = await make_user()
    order = await make_order(user)
    await _active_card(session_factory, user)
    await use_case.pay_with_token(user.id, "tok-1", order.id, Decimal("100000"))
    return order


async def test_cancel_payment_refunds(use_case, gateway, session_factory, make_user, make_order):
    order = await _paid_by_token(use_case, session_factory, make_user, make_order)

    await use_case.cancel_payment("555")

    gateway.cancel_payment.assert_awaited_once_with("555")
    order, payment, ledger = await _state(session_factory, order.id)
    assert payment.status == PaymentStatus.CANCELLED
    assert payment.deleted_at is not None
    assert order.status == OrderStatus.CANCELLED
    assert (TransactionType.REFUND, TransactionStatus.SUCCESS) in [(t.type, t.status) for t in ledger]


async def test_cancel_payment_provider_refusal(use_case, gateway, session_factory, make_user, make_order):
    order = await _paid_by_token(use_case, session_factory, make_user, make_order)
    gateway.cancel_payment.return_value = False

    with pytest.raises(ProviderError):
        await use_case.cancel_payment("555")

    order, payment, ledger = await _state(session_factory, order.id)
    assert payment.status == PaymentStatus.SUCCESS
    assert order.status == OrderStatus.PAID
    assert TransactionType.REFUND not in [t.type for t in ledger]


async def test_cancel_pending_payment_is_rejected(use_case, gateway, session_factory, make_user, make_order):
    user = await make_user()
    order = await make_order(user)
    await _active_card(session_factory, user)
    gateway.payment_with_token.return_value = GatewayResult.ok(payment_id=555, payment_status=0)
    await use_case.pay_with_token(user.id, "tok-1", order.id, Decimal("100000"))

    with pytest.raises(InvalidPaymentTransitionError):
        await use_case.cancel_payment("555")
    gateway.cancel_payment.assert_not_awaited()


async def test_cancel_unknown_payment(use_case):
    with pytest.raises(PaymentNotFoundError):
        await use_case.cancel_payment("does-not-exist")


async def test_cancelled_payment_cannot_be_cancelled_again(use_case, session_factory, make_user, make_order):
    await _paid_by_token(use_case, session_factory, make_user, make_order)
    await use_case.cancel_payment("555")

    with pytest.raises(PaymentNotFoundError):
        await use_case.cancel_payment("555")


# ==================== 토큰 결제 보상 취소 ====================

def _charge_while_order_gets_paid(session_factory, order):
    """결제사 승인 도중 다른 경로로 같은 주문에 결제가 생긴 상황"""
    async def _charge(card_token, amount, merchant_trans_id):
        async with unit_of_work(session_factory) as session:
            await PaymentRepository(session).add(order_id=order.id, amount=Decimal(order.total),
                                                 method=PaymentMethod.CASH, status=PaymentStatus.PENDING)
        return GatewayResult.ok(payment_id=777, payment_status=1)
    return _charge


async def test_token_charge_is_reversed_when_it_cannot_be_recorded(use_case, gateway, session_factory,
                                                                   make_user, make_order):
    user = await make_user()
    order = await make_order(user)
    await _active_card(session_factory, user)
    gateway.payment_with_token.side_effect = _charge_while_order_gets_paid(session_factory, order)

    with pytest.raises(PaymentAlreadyExistsError):
        await use_case.pay_with_token(user.id, "tok-1", order.id, Decimal("100000"))

    gateway.cancel_payment.assert_awaited_once_with("777")
    order, payment, ledger = await _state(session_factory, order.id)
    assert payment.method == PaymentMethod.CASH
    assert order.status == OrderStatus.PENDING
    assert ledger == []


async def test_token_charge_reversal_failure_still_raises(use_case, gateway, session_factory,
                                                          make_user, make_order):
    user = await make_user()
    order = await make_order(user)
    await _active_card(session_factory, user)
    gateway.payment_with_token.side_effect = _charge_while_order_gets_paid(session_factory, order)
    gateway.cancel_payment.return_value = False

    with pytest.raises(PaymentAlreadyExistsError):
        await use_case.pay_with_token(user.id, "tok-1", order.id, Decimal("100000"))

    gateway.cancel_payment.assert_awaited_once_with("777")


async def test_recorded_token_payment_is_not_reversed(use_case, gateway, session_factory, make_user, make_order):
    await _paid_by_token(use_case, session_factory, make_user, make_order)

    gateway.cancel_payment.assert_not_awaited()


# ==================== 조회 권한 ====================

async def test_payment_status_of_other_users_order_is_hidden(use_case, gateway, session_factory,
                                                             make_user, make_order):
    await _paid_by_token(use_case, session_factory, make_user, make_order)
    stranger = await make_user(phone_number="998907654321")

    with pytest.raises(PaymentNotFoundError):
        await use_case.check_payment_status("555", user_id=stranger.id)
    gateway.check_payment.assert_not_awaited()


async def test_payment_status_for_owner_and_admin(use_case, gateway, session_factory, make_user, make_order):
    order = await _paid_by_token(use_case, session_factory, make_user, make_order)

    owner_view = await use_case.check_payment_status("555", user_id=order.user_id)
    admin_view = await use_case.check_payment_status("555")

    assert owner_view["payment"].order_id == order.id
    assert admin_view["payment"].order_id == order.id


async def test_invoice_status_of_other_users_order_is_hidden(use_case, gateway, session_factory,
                                                             make_user, make_order):
    user = await make_user()
    order = await make_order(user)
    await use_case.create_invoice(user.id, order.id, Decimal("100000"), "998901234567")
    stranger = await make_user(phone_number="998907654321")

    with pytest.raises(PaymentNotFoundError):
        await use_case.check_invoice_status(777, user_id=stranger.id)
    gateway.check_invoice_status.assert_not_awaited()
    _, payment, _ = await _state(session_factory, order.id)
    assert payment.status == PaymentStatus.PENDING


async def test_check_by_order_of_other_user_is_hidden(use_case, gateway, mocker, make_user, make_order):
    order = await make_order(await make_user())
    stranger = await make_user(phone_number="998907654321")
    gateway.check_payment_by_merchant_trans_id = mocker.AsyncMock(
        return_value=GatewayResult.ok(payment_id=555, payment_status=1))

    with pytest.raises(OrderNotFoundError):
        await use_case.check_payment_by_order(order.id, "2024-01-01", user_id=stranger.id)
    gateway.check_payment_by_merchant_trans_id.assert_not_awaited()

    result = await use_case.check_payment_by_order(order.id, "2024-01-01", user_id=order.user_id)
    assert result["payment_id"] == 555
