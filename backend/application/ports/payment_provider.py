"""결제 제공자 포트 인터페이스"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Dict, Any


@dataclass
class GatewayResult:
    """게이트웨이 호출 결과: 예외 대신 success 플래그로 실패를 전달한다"""
    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    error_code: Optional[int] = None

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    @classmethod
    def ok(cls, **data) -> "GatewayResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, error_code: Optional[int] = None) -> "GatewayResult":
        return cls(success=False, error=error, error_code=error_code)


@dataclass
class ProviderPaymentStatus:
    status: str  # "pending" | "success" | "failed" | "cancelled"
    transaction_id: str
    amount: Decimal = Decimal("0")
    error: Optional[str] = None  # 조회 자체가 실패한 경우


class PaymentProvider(ABC):
    """결제 생성/조회/취소 기능 집합"""

    # 외부 호출이 필요한 제공자인지
    is_remote: bool = True

    @abstractmethod
    async def create_payment(self, order_id: str, amount: Decimal) -> GatewayResult: ...
    @abstractmethod
    async def check_payment(self, transaction_id: str) -> ProviderPaymentStatus: ...
    @abstractmethod
    async def cancel_payment(self, transaction_id: str) -> bool: ...
