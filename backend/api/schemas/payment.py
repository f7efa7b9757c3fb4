"""결제 관련 스키마"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field
from api.schemas.common import ResponseBase
from domain.enums import PaymentMethod, PaymentStatus


class PaymentItem(BaseModel):
    id: int
    order_id: str
    amount: Decimal
    method: PaymentMethod
    status: PaymentStatus
    external_transaction_id: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class PaymentCreateRequest(BaseModel):
    order_id: str
    amount: Decimal = Field(..., gt=0)
    method: PaymentMethod


class PaymentCreateResponse(ResponseBase):
    payment: PaymentItem
    payment_url: Optional[str] = None


class PaymentUpdateRequest(BaseModel):
    status: Optional[PaymentStatus] = None


class PaymentListResponse(ResponseBase):
    items: List[PaymentItem]
    total: int
    page: int
    limit: int
