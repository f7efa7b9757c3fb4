"""공통 테스트 픽스처: 테스트마다 새 in-memory SQLite"""
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from config import ClickConfig, PaymeConfig
from domain.enums import UserRole, OrderStatus
from infrastructure.persistence.database import Base, unit_of_work
from infrastructure.persistence.models import User, Order
from infrastructure.payment.signature import ClickSignatureVerifier

SECRET = "test-secret"
SERVICE_ID = 12345


@pytest.fixture
def click_config() -> ClickConfig:
    return ClickConfig(merchant_id="100", service_id=SERVICE_ID, merchant_user_id="500",
                       secret_key=SECRET, api_url="https://click.test/v2/merchant", timeout=5.0)


@pytest.fixture
def payme_config() -> PaymeConfig:
    return PaymeConfig(merchant_id="payme-merchant", callback_url="https://shop.test/return",
                       checkout_url="https://checkout.test")


@pytest.fixture
def verifier(click_config) -> ClickSignatureVerifier:
    return ClickSignatureVerifier(click_config)


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False,
                                 autoflush=False)
    yield factory
    await engine.dispose()


@pytest.fixture
def make_user(session_factory):
    async def _make(phone_number: str = "998901234567", role: UserRole = UserRole.USER,
                    full_name: str = "Test User") -> User:
        async with unit_of_work(session_factory) as session:
            user = User(full_name=full_name, phone_number=phone_number, role=role, is_active=True)
            session.add(user)
            await session.flush()
        return user
    return _make


@pytest.fixture
def make_order(session_factory):
    async def _make(user: User, total="100000", status: OrderStatus = OrderStatus.PENDING,
                    order_id: str = None) -> Order:
        async with unit_of_work(session_factory) as session:
            order = Order(user_id=user.id, total=Decimal(total), status=status)
            if order_id:
                order.id = order_id
            session.add(order)
            await session.flush()
        return order
    return _make


@pytest.fixture
def sign(verifier):
    """Click 서명 생성 헬퍼"""
    def _sign(click_trans_id, merchant_trans_id, amount, action, sign_time="2024-01-01 10:00:00",
              service_id=SERVICE_ID) -> str:
        return verifier.build(click_trans_id, service_id, merchant_trans_id, amount, action, sign_time)
    return _sign
