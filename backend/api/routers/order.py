"""주문 조회 라우터"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from domain.enums import UserRole
from infrastructure.persistence.database import get_session
from infrastructure.persistence.models.user import User
from infrastructure.persistence.repositories import OrderRepository, PaymentRepository
from api.schemas.order import OrderItem, OrderDetailResponse
from api.schemas.payment import PaymentItem
from api.dependencies import get_current_active_user

router = APIRouter(prefix="/api/orders", tags=["주문"])


@router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_order(order_id: str,
                    current_user: User = Depends(get_current_active_user),
                    session: AsyncSession = Depends(get_session)):
    """주문 및 결제 상태 조회"""
    user_id = None if current_user.role == UserRole.ADMIN else current_user.id
    order = await OrderRepository(session).get(order_id, user_id=user_id)
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="주문을 찾을 수 없습니다.")
    payment = await PaymentRepository(session).get_by_order(order.id)
    return OrderDetailResponse(order=OrderItem.model_validate(order),
                               payment=PaymentItem.model_validate(payment) if payment else None)
