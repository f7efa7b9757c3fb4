"""Click 콜백 서명 검증"""
import hashlib
import hmac
from decimal import Decimal
from typing import Union

from config import ClickConfig


class ClickSignatureVerifier:
    def __init__(self, config: ClickConfig):
        self._secret_key = config.secret_key

    def build(self, click_trans_id: int, service_id: int, merchant_trans_id: str,
              amount: Union[Decimal, str], action: int, sign_time: str) -> str:
        """md5(click_trans_id + service_id + SECRET_KEY + merchant_trans_id + amount + action + sign_time)"""
        data = f"{click_trans_id}{service_id}{self._secret_key}{merchant_trans_id}{amount}{action}{sign_time}"
        return hashlib.md5(data.encode()).hexdigest()

    def verify(self, click_trans_id: int, service_id: int, merchant_trans_id: str,
               amount: Union[Decimal, str], action: int, sign_time: str, sign_string: str) -> bool:
        expected = self.build(click_trans_id, service_id, merchant_trans_id, amount, action, sign_time)
        return hmac.compare_digest(expected.encode(), (sign_string or "").encode())
