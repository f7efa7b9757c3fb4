"""도메인 예외"""


class DomainError(Exception):
    """도메인 레이어 기본 예외"""
    status_code = 400


class OrderNotFoundError(DomainError):
    status_code = 404

    def __init__(self, order_id: str):
        super().__init__(f"주문을 찾을 수 없습니다: {order_id}")


class OrderAccessDeniedError(DomainError):
    status_code = 403

    def __init__(self):
        super().__init__("권한이 없습니다.")


class OrderNotPendingError(DomainError):
    def __init__(self, status: str):
        super().__init__(f"주문 상태가 {status}이므로 결제를 진행할 수 없습니다.")


class PaymentNotFoundError(DomainError):
    status_code = 404

    def __init__(self, payment_id: str = ""):
        super().__init__(f"결제를 찾을 수 없습니다: {payment_id}" if payment_id else "결제를 찾을 수 없습니다.")


class PaymentAlreadyExistsError(DomainError):
    def __init__(self):
        super().__init__("이미 해당 주문에 대한 결제가 존재합니다.")


class InvalidPaymentTransitionError(DomainError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"허용되지 않는 결제 상태 전이입니다: {current} -> {target}")


class CardNotFoundError(DomainError):
    status_code = 404

    def __init__(self):
        super().__init__("카드 토큰을 찾을 수 없습니다.")


class CardNotVerifiedError(DomainError):
    def __init__(self):
        super().__init__("카드 토큰이 없거나 인증되지 않았습니다.")


class ProviderError(DomainError):
    """결제 게이트웨이가 요청을 거절했거나 응답하지 않음"""

    def __init__(self, message: str):
        super().__init__(message)


class UnsupportedPaymentMethodError(Exception):
    """지원하지 않는 결제 수단: 호출 측 프로그래밍 오류"""

    def __init__(self, method):
        super().__init__(f"지원하지 않는 결제 수단입니다: {method}")


class AmountMismatchError(DomainError):
    def __init__(self, expected, actual):
        super().__init__(f"결제 금액이 일치하지 않습니다. 주문 금액: {expected}, 요청 금액: {actual}")
