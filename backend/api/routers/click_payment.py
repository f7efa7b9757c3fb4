"""Click 인보이스 / 카드 토큰 / 결제 조회 라우터"""
from fastapi import APIRouter, Depends, Path

from domain.enums import UserRole
from infrastructure.persistence.models.user import User
from api.schemas.common import ResponseBase
from api.schemas.payment import PaymentItem
from api.schemas.click import (
    CreateInvoiceRequest, InvoiceResponse, InvoiceStatusResponse,
    RequestCardTokenRequest, CardTokenResponse, VerifyCardTokenRequest, VerifyCardTokenResponse,
    DeleteCardTokenRequest, PaymentWithTokenRequest, PaymentResultResponse,
    ClickPaymentStatusResponse, CheckByOrderResponse, SavedCardItem, SavedCardListResponse,
)
from api.dependencies import (
    get_current_active_user, get_admin_user, get_click_payment_use_case, get_saved_card_use_case,
)
from application.use_cases.click_payment import ClickPaymentUseCase
from application.use_cases.saved_cards import SavedCardUseCase

router = APIRouter(prefix="/api/click", tags=["Click 결제"])


def _item(payment):
    return PaymentItem.model_validate(payment) if payment is not None else None


def _scope(user: User):
    """관리자는 전체, 일반 사용자는 본인 주문만"""
    return None if user.role == UserRole.ADMIN else user.id


@router.post("/invoice/create", response_model=InvoiceResponse)
async def create_invoice(request: CreateInvoiceRequest,
                         current_user: User = Depends(get_current_active_user),
                         use_case: ClickPaymentUseCase = Depends(get_click_payment_use_case)):
    result = await use_case.create_invoice(current_user.id, request.order_id, request.amount,
                                           request.phone_number)
    return InvoiceResponse(success=True, message=result["message"], invoice_id=result["invoice_id"],
                           payment=_item(result["payment"]))


@router.get("/invoice/status/{invoice_id}", response_model=InvoiceStatusResponse)
async def check_invoice_status(invoice_id: int,
                               current_user: User = Depends(get_current_active_user),
                               use_case: ClickPaymentUseCase = Depends(get_click_payment_use_case)):
    result = await use_case.check_invoice_status(invoice_id, user_id=_scope(current_user))
    return InvoiceStatusResponse(success=True, invoice_id=invoice_id, status=result["status"],
                                 status_note=result["status_note"], payment=_item(result["payment"]))


@router.post("/card/request-token", response_model=CardTokenResponse)
async def request_card_token(request: RequestCardTokenRequest,
                             current_user: User = Depends(get_current_active_user),
                             use_case: SavedCardUseCase = Depends(get_saved_card_use_case)):
    result = await use_case.request_token(current_user.id, request.card_number, request.expire_date,
                                          request.temporary)
    return CardTokenResponse(success=True, message=result["message"], card_token=result["card_token"],
                             phone_number=result["phone_number"])


@router.post("/card/verify-token", response_model=VerifyCardTokenResponse)
async def verify_card_token(request: VerifyCardTokenRequest,
                            current_user: User = Depends(get_current_active_user),
                            use_case: SavedCardUseCase = Depends(get_saved_card_use_case)):
    result = await use_case.verify_token(current_user.id, request.card_token, request.sms_code)
    return VerifyCardTokenResponse(success=True, message=result["message"],
                                   card_token=result["card_token"], card_number=result["card_number"])


@router.delete("/card/delete-token", response_model=ResponseBase)
async def delete_card_token(request: DeleteCardTokenRequest,
                            current_user: User = Depends(get_current_active_user),
                            use_case: SavedCardUseCase = Depends(get_saved_card_use_case)):
    result = await use_case.delete_token(current_user.id, request.card_token)
    return ResponseBase(success=True, message=result["message"])


@router.get("/user/saved-cards", response_model=SavedCardListResponse)
async def get_saved_cards(current_user: User = Depends(get_current_active_user),
                          use_case: SavedCardUseCase = Depends(get_saved_card_use_case)):
    cards = await use_case.list_cards(current_user.id)
    return SavedCardListResponse(success=True, cards=[SavedCardItem.model_validate(c) for c in cards])


@router.post("/payment/with-token", response_model=PaymentResultResponse)
async def payment_with_token(request: PaymentWithTokenRequest,
                             current_user: User = Depends(get_current_active_user),
                             use_case: ClickPaymentUseCase = Depends(get_click_payment_use_case)):
    result = await use_case.pay_with_token(current_user.id, request.card_token, request.order_id,
                                           request.amount)
    return PaymentResultResponse(success=True, message=result["message"], payment=_item(result["payment"]))


@router.get("/payment/status/{payment_id}", response_model=ClickPaymentStatusResponse)
async def check_payment_status(payment_id: str,
                               current_user: User = Depends(get_current_active_user),
                               use_case: ClickPaymentUseCase = Depends(get_click_payment_use_case)):
    result = await use_case.check_payment_status(payment_id, user_id=_scope(current_user))
    return ClickPaymentStatusResponse(success=result["success"], payment_id=payment_id,
                                      status=result["status"], payment=_item(result["payment"]))


@router.get("/payment/check-by-order/{order_id}/{date}", response_model=CheckByOrderResponse)
async def check_payment_by_order(order_id: str,
                                 date: str = Path(..., pattern=r"^\d{4}-\d{2}-\d{2}$"),
                                 current_user: User = Depends(get_current_active_user),
                                 use_case: ClickPaymentUseCase = Depends(get_click_payment_use_case)):
    result = await use_case.check_payment_by_order(order_id, date, user_id=_scope(current_user))
    return CheckByOrderResponse(success=True, order_id=order_id, payment_id=result["payment_id"],
                                payment_status=result["payment_status"], payment=_item(result["payment"]))


@router.delete("/payment/cancel/{payment_id}", response_model=ResponseBase)
async def cancel_payment(payment_id: str,
                         admin: User = Depends(get_admin_user),
                         use_case: ClickPaymentUseCase = Depends(get_click_payment_use_case)):
    result = await use_case.cancel_payment(payment_id)
    return ResponseBase(success=True, message=result["message"])
