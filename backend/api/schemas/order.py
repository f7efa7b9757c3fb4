"""주문 조회 스키마"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel
from api.schemas.payment import PaymentItem
from domain.enums import OrderStatus


class OrderItem(BaseModel):
    id: str
    user_id: int
    total: Decimal
    status: OrderStatus
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class OrderDetailResponse(BaseModel):
    order: OrderItem
    payment: Optional[PaymentItem] = None
