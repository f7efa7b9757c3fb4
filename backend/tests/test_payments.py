"""결제 관리 유스케이스 테스트"""
from decimal import Decimal

import pytest

from domain.enums import (
    OrderStatus, PaymentMethod, PaymentStatus, TransactionType, TransactionStatus,
)
from domain.exceptions import (
    PaymentAlreadyExistsError, OrderNotPendingError, OrderNotFoundError,
    InvalidPaymentTransitionError, PaymentNotFoundError,
)
from application.use_cases.payments import PaymentUseCase
from infrastructure.payment.click_gateway import ClickGateway
from infrastructure.payment.payme_gateway import PaymeGateway
from infrastructure.payment.factory import PaymentProviderFactory
from infrastructure.persistence.database import unit_of_work
from infrastructure.persistence.models import Order
from infrastructure.persistence.repositories import PaymentRepository, TransactionRepository


@pytest.fixture
def payments(session_factory, click_config, payme_config):
    factory = PaymentProviderFactory(click=ClickGateway(click_config), payme=PaymeGateway(payme_config))
    return PaymentUseCase(session_factory, factory)


async def _state(session_factory, order_id):
    async with unit_of_work(session_factory) as session:
        order = await session.get(Order, order_id)
        payment = await PaymentRepository(session).get_by_order(order_id)
        ledger = await TransactionRepository(session).list_by_order(order_id)
    return order, payment, ledger


async def test_create_card_payment_is_immediate(payments, session_factory, make_user, make_order):
    order = await make_order(await make_user())

    result = await payments.create(order.id, Decimal("100000"), PaymentMethod.CARD)

    assert result["payment"].status == PaymentStatus.SUCCESS
    order, _, ledger = await _state(session_factory, order.id)
    assert order.status == OrderStatus.PAID
    assert [t.status for t in ledger] == [TransactionStatus.SUCCESS]


async def test_create_cash_payment_is_pending(payments, session_factory, make_user, make_order):
    order = await make_order(await make_user())

    result = await payments.create(order.id, Decimal("100000"), PaymentMethod.CASH)

    assert result["payment"].status == PaymentStatus.PENDING
    assert result["payment_url"] is None
    order, _, _ = await _state(session_factory, order.id)
    assert order.status == OrderStatus.PENDING


async def test_create_payme_payment_returns_checkout_url(payments, session_factory, make_user, make_order):
    order = await make_order(await make_user())

    result = await payments.create(order.id, Decimal("100000"), PaymentMethod.PAYME)

    assert result["payment_url"].startswith("https://checkout.test/")
    _, _, ledger = await _state(session_factory, order.id)
    assert ledger[0].metadata_json["payment_url"] == result["payment_url"]


async def test_create_rejects_second_payment(payments, make_user, make_order):
    order = await make_order(await make_user())
    await payments.create(order.id, Decimal("100000"), PaymentMethod.CASH)

    with pytest.raises(PaymentAlreadyExistsError):
        await payments.create(order.id, Decimal("100000"), PaymentMethod.CASH)


async def test_create_rejects_non_pending_order(payments, make_user, make_order):
    order = await make_order(await make_user(), status=OrderStatus.CANCELLED)

    with pytest.raises(OrderNotPendingError):
        await payments.create(order.id, Decimal("100000"), PaymentMethod.CASH)


async def test_create_missing_order(payments):
    with pytest.raises(OrderNotFoundError):
        await payments.create("missing", Decimal("1"), PaymentMethod.CASH)


async def test_update_status_to_success(payments, session_factory, make_user, make_order):
    order = await make_order(await make_user())
    created = await payments.create(order.id, Decimal("100000"), PaymentMethod.CASH)

    payment = await payments.update_status(created["payment"].id, PaymentStatus.SUCCESS)

    assert payment.status == PaymentStatus.SUCCESS
    order, _, ledger = await _state(session_factory, order.id)
    assert order.status == OrderStatus.PAID
    assert [t.status for t in ledger] == [TransactionStatus.SUCCESS]


async def test_update_status_rejects_invalid_transition(payments, make_user, make_order):
    order = await make_order(await make_user())
    created = await payments.create(order.id, Decimal("100000"), PaymentMethod.CARD)

    with pytest.raises(InvalidPaymentTransitionError):
        await payments.update_status(created["payment"].id, PaymentStatus.PENDING)


async def test_cancel_pending_payment_is_rejected(payments, session_factory, make_user, make_order):
    order = await make_order(await make_user())
    created = await payments.create(order.id, Decimal("100000"), PaymentMethod.CASH)

    with pytest.raises(InvalidPaymentTransitionError):
        await payments.cancel(created["payment"].id)

    order, payment, ledger = await _state(session_factory, order.id)
    assert payment.status == PaymentStatus.PENDING
    assert payment.deleted_at is None
    assert order.status == OrderStatus.PENDING
    assert [t.status for t in ledger] == [TransactionStatus.PENDING]


async def test_update_status_to_cancelled_on_pending_is_rejected(payments, session_factory,
                                                                 make_user, make_order):
    order = await make_order(await make_user())
    created = await payments.create(order.id, Decimal("100000"), PaymentMethod.CASH)

    with pytest.raises(InvalidPaymentTransitionError):
        await payments.update_status(created["payment"].id, PaymentStatus.CANCELLED)

    _, payment, _ = await _state(session_factory, order.id)
    assert payment.status == PaymentStatus.PENDING
    assert (await payments.get(payment.id)).id == payment.id


async def test_cancel_completed_offline_payment_records_refund(payments, session_factory, make_user, make_order):
    order = await make_order(await make_user())
    created = await payments.create(order.id, Decimal("100000"), PaymentMethod.CARD)

    await payments.cancel(created["payment"].id)

    order, payment, ledger = await _state(session_factory, order.id)
    assert payment.status == PaymentStatus.CANCELLED
    assert order.status == OrderStatus.CANCELLED
    assert [(t.type, t.status) for t in ledger] == [
        (TransactionType.PAYMENT, TransactionStatus.SUCCESS),
        (TransactionType.REFUND, TransactionStatus.SUCCESS),
    ]
    assert payment.deleted_at is not None
    with pytest.raises(PaymentNotFoundError):
        await payments.get(payment.id)


async def test_cancel_failed_payment_is_rejected(payments, make_user, make_order):
    order = await make_order(await make_user())
    created = await payments.create(order.id, Decimal("100000"), PaymentMethod.CASH)
    await payments.update_status(created["payment"].id, PaymentStatus.FAILED)

    with pytest.raises(InvalidPaymentTransitionError):
        await payments.cancel(created["payment"].id)


async def test_list_with_search(payments, make_user, make_order):
    alice = await make_user(full_name="Alice Karimova", phone_number="998900000001")
    bob = await make_user(full_name="Bob Tursunov", phone_number="998900000002")
    for user in (alice, bob):
        order = await make_order(user)
        await payments.create(order.id, Decimal("100000"), PaymentMethod.CASH)

    items, total = await payments.list(page=1, limit=10)
    assert total == 2
    assert len(items) == 2

    items, total = await payments.list(page=1, limit=10, search="alice")
    assert total == 1

    items, total = await payments.list(page=2, limit=1)
    assert total == 2
    assert len(items) == 1
