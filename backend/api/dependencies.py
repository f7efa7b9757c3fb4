"""
FastAPI 의존성 주입 (Depends)

모든 라우터에서 사용하는 공통 의존성을 정의한다.
게이트웨이 비밀값은 시작 시 ClickConfig/PaymeConfig 로 고정되어 생성자로 전달된다.
"""
from functools import lru_cache

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import settings, ClickConfig, PaymeConfig
from infrastructure.persistence.database import get_session, get_session_factory
from infrastructure.persistence.models.user import User
from domain.enums import UserRole
from infrastructure.auth.jwt_service import decode_token
from infrastructure.payment.click_gateway import ClickGateway
from infrastructure.payment.payme_gateway import PaymeGateway
from infrastructure.payment.factory import PaymentProviderFactory
from infrastructure.payment.signature import ClickSignatureVerifier
from application.use_cases.click_callback import ClickCallbackUseCase
from application.use_cases.click_payment import ClickPaymentUseCase
from application.use_cases.saved_cards import SavedCardUseCase
from application.use_cases.payments import PaymentUseCase

security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session: AsyncSession = Depends(get_session)
) -> User:
    """현재 인증된 사용자 반환"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="유효하지 않은 인증 정보입니다.",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token = credentials.credentials
    payload = decode_token(token)

    if payload is None or payload.get("type") != "access":
        raise credentials_exception

    user_id_raw = payload.get("sub")
    if user_id_raw is None:
        raise credentials_exception
    try:
        user_id = int(user_id_raw)
    except (ValueError, TypeError):
        raise credentials_exception

    result = await session.execute(
        select(User).where(User.id == user_id, User.deleted_at.is_(None)))
    user = result.scalar_one_or_none()

    if user is None:
        raise credentials_exception
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """활성 사용자 확인"""
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                            detail="비활성화된 계정입니다.")
    return current_user


async def get_admin_user(
    current_user: User = Depends(get_current_active_user)
) -> User:
    """관리자 사용자 확인"""
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                            detail="관리자 권한이 필요합니다.")
    return current_user


# ==================== 결제 구성요소 ====================

@lru_cache()
def get_click_config() -> ClickConfig:
    return ClickConfig.from_settings(settings)


@lru_cache()
def get_payme_config() -> PaymeConfig:
    return PaymeConfig.from_settings(settings)


def get_click_gateway(config: ClickConfig = Depends(get_click_config)) -> ClickGateway:
    return ClickGateway(config)


def get_provider_factory(
    click: ClickGateway = Depends(get_click_gateway),
    payme_config: PaymeConfig = Depends(get_payme_config),
) -> PaymentProviderFactory:
    return PaymentProviderFactory(click=click, payme=PaymeGateway(payme_config))


def get_click_callback_use_case(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    config: ClickConfig = Depends(get_click_config),
) -> ClickCallbackUseCase:
    return ClickCallbackUseCase(session_factory, ClickSignatureVerifier(config),
                                amount_tolerance=settings.AMOUNT_TOLERANCE)


def get_click_payment_use_case(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    gateway: ClickGateway = Depends(get_click_gateway),
) -> ClickPaymentUseCase:
    return ClickPaymentUseCase(session_factory, gateway, amount_tolerance=settings.AMOUNT_TOLERANCE)


def get_saved_card_use_case(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    gateway: ClickGateway = Depends(get_click_gateway),
) -> SavedCardUseCase:
    return SavedCardUseCase(session_factory, gateway)


def get_payment_use_case(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    providers: PaymentProviderFactory = Depends(get_provider_factory),
) -> PaymentUseCase:
    return PaymentUseCase(session_factory, providers)
