"""Click 콜백 및 Click 결제 스키마"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator

from api.schemas.common import ResponseBase
from api.schemas.payment import PaymentItem


class ClickPrepareRequest(BaseModel):
    click_trans_id: int
    service_id: int
    click_paydoc_id: int
    merchant_trans_id: str
    amount: Decimal
    action: int
    error: int = 0
    error_note: str = ""
    sign_time: str
    sign_string: str


class ClickCompleteRequest(ClickPrepareRequest):
    merchant_prepare_id: int


class ClickPrepareResponse(BaseModel):
    click_trans_id: int
    merchant_trans_id: str
    merchant_prepare_id: int
    error: int
    error_note: str


class ClickCompleteResponse(BaseModel):
    click_trans_id: int
    merchant_trans_id: str
    merchant_confirm_id: int
    error: int
    error_note: str


class CreateInvoiceRequest(BaseModel):
    order_id: str
    amount: Decimal = Field(..., gt=0)
    phone_number: str = Field(..., pattern=r"^998\d{9}$")


class InvoiceResponse(ResponseBase):
    invoice_id: int
    payment: PaymentItem


class InvoiceStatusResponse(ResponseBase):
    invoice_id: int
    status: Optional[int] = None
    status_note: Optional[str] = None
    payment: Optional[PaymentItem] = None


class RequestCardTokenRequest(BaseModel):
    card_number: str = Field(..., pattern=r"^\d{16}$")
    expire_date: str = Field(..., pattern=r"^(0[1-9]|1[0-2])\d{2}$")
    temporary: bool = False


class CardTokenResponse(ResponseBase):
    card_token: str
    phone_number: Optional[str] = None


class VerifyCardTokenRequest(BaseModel):
    card_token: str
    sms_code: str = Field(..., min_length=4, max_length=6)

    @field_validator("sms_code")
    @classmethod
    def validate_sms_code(cls, v):
        if not v.isdigit():
            raise ValueError("SMS 코드는 숫자여야 합니다.")
        return v


class VerifyCardTokenResponse(ResponseBase):
    card_token: str
    card_number: str


class DeleteCardTokenRequest(BaseModel):
    card_token: str


class PaymentWithTokenRequest(BaseModel):
    card_token: str
    order_id: str
    amount: Decimal = Field(..., gt=0)


class PaymentResultResponse(ResponseBase):
    payment: PaymentItem


class ClickPaymentStatusResponse(ResponseBase):
    payment_id: str
    status: str
    payment: Optional[PaymentItem] = None


class CheckByOrderResponse(ResponseBase):
    order_id: str
    payment_id: Optional[int] = None
    payment_status: Optional[int] = None
    payment: Optional[PaymentItem] = None


class SavedCardItem(BaseModel):
    id: int
    card_token: str
    card_number: str
    card_number_masked: str
    phone_number: Optional[str]
    is_temporary: bool
    last_used_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class SavedCardListResponse(ResponseBase):
    cards: List[SavedCardItem]
