"""
API 스키마 re-export

사용법:
  from api.schemas import PaymentItem, ClickPrepareRequest
"""
from api.schemas.common import ResponseBase
from api.schemas.payment import (
    PaymentItem, PaymentCreateRequest, PaymentCreateResponse, PaymentUpdateRequest, PaymentListResponse,
)
from api.schemas.order import OrderItem, OrderDetailResponse
from api.schemas.click import (
    ClickPrepareRequest, ClickCompleteRequest, ClickPrepareResponse, ClickCompleteResponse,
    CreateInvoiceRequest, InvoiceResponse, InvoiceStatusResponse,
    RequestCardTokenRequest, CardTokenResponse, VerifyCardTokenRequest, VerifyCardTokenResponse,
    DeleteCardTokenRequest, PaymentWithTokenRequest, PaymentResultResponse,
    ClickPaymentStatusResponse, CheckByOrderResponse, SavedCardItem, SavedCardListResponse,
)
