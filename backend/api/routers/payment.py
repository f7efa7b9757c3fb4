"""결제 관리 라우터"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from domain.enums import UserRole
from domain.exceptions import OrderAccessDeniedError
from infrastructure.persistence.database import get_session
from infrastructure.persistence.models.order import Order
from infrastructure.persistence.models.user import User
from api.schemas.common import ResponseBase
from api.schemas.payment import (
    PaymentItem, PaymentCreateRequest, PaymentCreateResponse, PaymentUpdateRequest, PaymentListResponse,
)
from api.dependencies import get_current_active_user, get_admin_user, get_payment_use_case
from application.use_cases.payments import PaymentUseCase

router = APIRouter(prefix="/api/payments", tags=["결제"])


@router.post("/create", response_model=PaymentCreateResponse)
async def create_payment(request: PaymentCreateRequest,
                         admin: User = Depends(get_admin_user),
                         use_case: PaymentUseCase = Depends(get_payment_use_case)):
    result = await use_case.create(request.order_id, request.amount, request.method)
    return PaymentCreateResponse(success=True, payment=PaymentItem.model_validate(result["payment"]),
                                 payment_url=result["payment_url"])


@router.get("/load", response_model=PaymentListResponse)
async def list_payments(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                        search: Optional[str] = None,
                        admin: User = Depends(get_admin_user),
                        use_case: PaymentUseCase = Depends(get_payment_use_case)):
    payments, total = await use_case.list(page=page, limit=limit, search=search)
    return PaymentListResponse(success=True, items=[PaymentItem.model_validate(p) for p in payments],
                               total=total, page=page, limit=limit)


@router.get("/get/{payment_id}", response_model=PaymentItem)
async def get_payment(payment_id: int,
                      current_user: User = Depends(get_current_active_user),
                      session: AsyncSession = Depends(get_session),
                      use_case: PaymentUseCase = Depends(get_payment_use_case)):
    payment = await use_case.get(payment_id)
    if current_user.role != UserRole.ADMIN:
        order = await session.get(Order, payment.order_id)
        if order is None or order.user_id != current_user.id:
            raise OrderAccessDeniedError()
    return PaymentItem.model_validate(payment)


@router.patch("/admin/update/{payment_id}", response_model=PaymentItem)
async def update_payment(payment_id: int, request: PaymentUpdateRequest,
                         admin: User = Depends(get_admin_user),
                         use_case: PaymentUseCase = Depends(get_payment_use_case)):
    payment = await use_case.update_status(payment_id, request.status)
    return PaymentItem.model_validate(payment)


@router.delete("/admin/delete/{payment_id}", response_model=ResponseBase)
async def delete_payment(payment_id: int,
                         admin: User = Depends(get_admin_user),
                         use_case: PaymentUseCase = Depends(get_payment_use_case)):
    await use_case.cancel(payment_id)
    return ResponseBase(success=True, message="결제가 취소되었습니다.")
