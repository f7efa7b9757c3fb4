"""Click PREPARE/COMPLETE 콜백 라우터

Click 은 오류 시에도 자신의 응답 형식을 기대하므로 이 라우터는 예외를 밖으로 내보내지 않는다.
"""
from typing import Dict, Any

from fastapi import APIRouter, Depends, Request
from loguru import logger
from pydantic import ValidationError

from domain.enums import ClickErrorCode
from api.schemas.click import (
    ClickPrepareRequest, ClickCompleteRequest, ClickPrepareResponse, ClickCompleteResponse,
)
from api.dependencies import get_click_callback_use_case
from application.use_cases.click_callback import ClickCallbackUseCase, ClickCallbackInput

router = APIRouter(prefix="/api/click/callback", tags=["Click 콜백"])

BAD_REQUEST_NOTE = "Error in request from click"


async def _read_payload(request: Request) -> Dict[str, Any]:
    """form-urlencoded(Click 기본) 또는 JSON 본문"""
    try:
        if request.headers.get("content-type", "").startswith("application/json"):
            payload = await request.json()
            return payload if isinstance(payload, dict) else {}
        return dict(await request.form())
    except Exception as e:
        logger.warning(f"Click 콜백 본문 해석 실패: {e}")
        return {}


def _safe_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@router.post("/prepare", response_model=ClickPrepareResponse)
async def click_prepare(request: Request,
                        use_case: ClickCallbackUseCase = Depends(get_click_callback_use_case)):
    """PREPARE: Click 결제 전 검증"""
    payload = await _read_payload(request)
    logger.info(f"Click PREPARE 수신: {payload}")
    try:
        dto = ClickPrepareRequest.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Click PREPARE 요청 검증 실패: {e.errors()}")
        return ClickPrepareResponse(click_trans_id=_safe_int(payload.get("click_trans_id")),
                                    merchant_trans_id=str(payload.get("merchant_trans_id", "")),
                                    merchant_prepare_id=0, error=int(ClickErrorCode.BAD_REQUEST),
                                    error_note=BAD_REQUEST_NOTE)

    result = await use_case.prepare(ClickCallbackInput(**dto.model_dump()))
    logger.info(f"Click PREPARE 응답: {result.to_dict()}")
    return result.to_dict()


@router.post("/complete", response_model=ClickCompleteResponse)
async def click_complete(request: Request,
                         use_case: ClickCallbackUseCase = Depends(get_click_callback_use_case)):
    """COMPLETE: Click 결제 확정"""
    payload = await _read_payload(request)
    logger.info(f"Click COMPLETE 수신: {payload}")
    try:
        dto = ClickCompleteRequest.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Click COMPLETE 요청 검증 실패: {e.errors()}")
        return ClickCompleteResponse(click_trans_id=_safe_int(payload.get("click_trans_id")),
                                     merchant_trans_id=str(payload.get("merchant_trans_id", "")),
                                     merchant_confirm_id=0, error=int(ClickErrorCode.BAD_REQUEST),
                                     error_note=BAD_REQUEST_NOTE)

    result = await use_case.complete(ClickCallbackInput(**dto.model_dump()))
    logger.info(f"Click COMPLETE 응답: {result.to_dict()}")
    return result.to_dict()
