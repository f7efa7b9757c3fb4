"""
커머스 결제 서비스 설정
"""
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """애플리케이션 설정"""

    # 앱 기본 설정
    APP_NAME: str = "커머스 결제 서비스"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # 서버 설정
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # 데이터베이스 설정
    DB_URL: str = "sqlite+aiosqlite:///./data/shop.db"

    # JWT 설정
    SECRET_KEY: str = "your-super-secret-key-change-in-production-32chars"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24시간

    # Click 설정
    CLICK_MERCHANT_ID: str = ""
    CLICK_SERVICE_ID: str = "0"
    CLICK_MERCHANT_USER_ID: str = ""
    CLICK_SECRET_KEY: str = ""
    CLICK_API_URL: str = "https://api.click.uz/v2/merchant"
    CLICK_TIMEOUT: float = 30.0  # 초

    # Payme 설정
    PAYME_MERCHANT_ID: str = ""
    PAYME_CALLBACK_URL: str = ""
    PAYME_CHECKOUT_URL: str = "https://checkout.paycom.uz"

    # 콜백 금액 허용 오차 (숨)
    AMOUNT_TOLERANCE: Decimal = Decimal("0.01")

    # CORS 설정
    CORS_ORIGINS: list = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # 로깅 설정
    LOG_LEVEL: str = "DEBUG"
    LOG_FILE: str = "./logs/app.log"

    class Config:
        env_file = ".env.backend"
        case_sensitive = True
        env_file_encoding = "utf-8"


@dataclass(frozen=True)
class ClickConfig:
    """Click 연동 설정: 프로세스 시작 시 한 번 고정된다"""
    merchant_id: str
    service_id: int
    merchant_user_id: str
    secret_key: str
    api_url: str
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, s: Settings) -> "ClickConfig":
        return cls(
            merchant_id=s.CLICK_MERCHANT_ID,
            service_id=int(s.CLICK_SERVICE_ID or 0),
            merchant_user_id=s.CLICK_MERCHANT_USER_ID,
            secret_key=s.CLICK_SECRET_KEY,
            api_url=s.CLICK_API_URL.rstrip("/"),
            timeout=s.CLICK_TIMEOUT,
        )


@dataclass(frozen=True)
class PaymeConfig:
    merchant_id: str
    callback_url: str
    checkout_url: str

    @classmethod
    def from_settings(cls, s: Settings) -> "PaymeConfig":
        return cls(
            merchant_id=s.PAYME_MERCHANT_ID,
            callback_url=s.PAYME_CALLBACK_URL,
            checkout_url=s.PAYME_CHECKOUT_URL.rstrip("/"),
        )


@lru_cache()
def get_settings() -> Settings:
    """설정 싱글톤 반환"""
    return Settings()


# 설정 인스턴스
settings = get_settings()
