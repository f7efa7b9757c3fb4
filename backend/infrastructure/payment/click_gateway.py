"""Click Merchant API 클라이언트"""
import hashlib
import time
from decimal import Decimal
from typing import Dict, Any, Optional

import httpx
from loguru import logger

from config import ClickConfig
from application.ports.payment_provider import PaymentProvider, GatewayResult, ProviderPaymentStatus

# payment_status 코드 -> 내부 상태
_PAYMENT_STATUS = {1: "success", -1: "failed", -2: "cancelled"}


def _wire_amount(amount: Decimal):
    amount = Decimal(amount)
    return int(amount) if amount == amount.to_integral_value() else float(amount)


class ClickGateway(PaymentProvider):
    def __init__(self, config: ClickConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    def _auth_header(self) -> str:
        """merchant_user_id:sha1(timestamp + secret_key):timestamp"""
        timestamp = int(time.time())
        digest = hashlib.sha1(f"{timestamp}{self.config.secret_key}".encode()).hexdigest()
        return f"{self.config.merchant_user_id}:{digest}:{timestamp}"

    def _get_headers(self) -> Dict[str, str]:
        return {"Accept": "application/json", "Content-Type": "application/json",
                "Auth": self._auth_header()}

    async def _request(self, method: str, endpoint: str,
                       body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Click API 호출. 네트워크 오류는 호출 측에서 GatewayResult 로 변환한다"""
        url = f"{self.config.api_url}{endpoint}"
        logger.debug(f"Click 요청: {method} {url}")
        async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as client:
            response = await client.request(method, url, headers=self._get_headers(), json=body)
            data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected Click response: {type(data).__name__}")
        if data.get("error_code"):
            logger.error(f"Click API 오류: {data.get('error_note')} (code: {data.get('error_code')})")
        return data

    async def _call(self, name: str, method: str, endpoint: str,
                    body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            return await self._request(method, endpoint, body)
        except httpx.TimeoutException:
            logger.error(f"Click {name} 시간 초과")
            return {"error_code": None, "error_note": "Timeout"}
        except (httpx.RequestError, ValueError) as e:
            logger.error(f"Click {name} 실패: {e}")
            return {"error_code": None, "error_note": str(e) or type(e).__name__}

    @staticmethod
    def _failure(data: Dict[str, Any], default: str) -> GatewayResult:
        return GatewayResult.fail(data.get("error_note") or default, data.get("error_code"))

    async def create_invoice(self, order_id: str, amount: Decimal, phone_number: str) -> GatewayResult:
        """인보이스 생성: 사용자는 SMS 로 결제 요청을 받는다"""
        data = await self._call("인보이스 생성", "POST", "/invoice/create", {
            "service_id": self.config.service_id,
            "amount": _wire_amount(amount),
            "phone_number": phone_number,
            "merchant_trans_id": order_id,
        })
        if data.get("error_code") == 0 and data.get("invoice_id"):
            return GatewayResult.ok(invoice_id=data["invoice_id"])
        return self._failure(data, "Failed to create invoice")

    async def check_invoice_status(self, invoice_id: int) -> GatewayResult:
        data = await self._call("인보이스 조회", "GET",
                                f"/invoice/status/{self.config.service_id}/{invoice_id}")
        if data.get("error_code") == 0:
            return GatewayResult.ok(status=data.get("invoice_status"),
                                    status_note=data.get("invoice_status_note"))
        return self._failure(data, "Failed to check invoice status")

    async def create_payment(self, order_id: str, amount: Decimal) -> GatewayResult:
        # Click 은 인보이스/카드 토큰 기반이므로 실제 생성은 create_invoice 에서 한다
        return GatewayResult.ok(payment_url=f"{self.config.api_url}/invoice/create",
                                transaction_id=order_id)

    async def check_payment(self, transaction_id: str) -> ProviderPaymentStatus:
        data = await self._call("결제 조회", "GET",
                                f"/payment/status/{self.config.service_id}/{transaction_id}")
        if data.get("error_code") == 0:
            status = _PAYMENT_STATUS.get(data.get("payment_status"), "pending")
            return ProviderPaymentStatus(status=status, transaction_id=transaction_id)
        return ProviderPaymentStatus(status="failed", transaction_id=transaction_id,
                                     error=data.get("error_note") or "Failed to check payment")

    async def check_payment_by_merchant_trans_id(self, merchant_trans_id: str, date: str) -> GatewayResult:
        data = await self._call("주문별 결제 조회", "GET",
                                f"/payment/status_by_mti/{self.config.service_id}/{merchant_trans_id}/{date}")
        if data.get("error_code") == 0:
            return GatewayResult.ok(payment_id=data.get("payment_id"),
                                    payment_status=data.get("payment_status"))
        return self._failure(data, "Failed to check payment")

    async def cancel_payment(self, transaction_id: str) -> bool:
        """결제 취소(reversal). 시간 초과 포함 모든 실패는 False"""
        data = await self._call("결제 취소", "DELETE",
                                f"/payment/reversal/{self.config.service_id}/{transaction_id}")
        if data.get("error_code") == 0:
            logger.info(f"Click 결제 취소 완료: {transaction_id}")
            return True
        logger.error(f"Click 결제 취소 실패: {data.get('error_note')}")
        return False

    async def request_card_token(self, card_number: str, expire_date: str,
                                 temporary: bool = False) -> GatewayResult:
        data = await self._call("카드 토큰 요청", "POST", "/card_token/request", {
            "service_id": self.config.service_id,
            "card_number": card_number,
            "expire_date": expire_date,
            "temporary": 1 if temporary else 0,
        })
        if data.get("error_code") == 0 and data.get("card_token"):
            return GatewayResult.ok(card_token=data["card_token"],
                                    phone_number=data.get("phone_number"))
        return self._failure(data, "Failed to create card token")

    async def verify_card_token(self, card_token: str, sms_code: str) -> GatewayResult:
        data = await self._call("카드 토큰 인증", "POST", "/card_token/verify", {
            "service_id": self.config.service_id,
            "card_token": card_token,
            "sms_code": int(sms_code),
        })
        if data.get("error_code") == 0:
            return GatewayResult.ok(card_number=data.get("card_number"))
        return self._failure(data, "Failed to verify card token")

    async def payment_with_token(self, card_token: str, amount: Decimal,
                                 merchant_trans_id: str) -> GatewayResult:
        data = await self._call("토큰 결제", "POST", "/card_token/payment", {
            "service_id": self.config.service_id,
            "card_token": card_token,
            "amount": _wire_amount(amount),
            "transaction_parameter": merchant_trans_id,
        })
        if data.get("error_code") == 0:
            return GatewayResult.ok(payment_id=data.get("payment_id"),
                                    payment_status=data.get("payment_status"))
        return self._failure(data, "Payment with token failed")

    async def delete_card_token(self, card_token: str) -> bool:
        data = await self._call("카드 토큰 삭제", "DELETE",
                                f"/card_token/{self.config.service_id}/{card_token}")
        return data.get("error_code") == 0
