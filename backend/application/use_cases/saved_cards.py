"""저장 카드 유스케이스: 토큰 요청 → SMS 인증 → 활성화"""
from datetime import datetime
from typing import Dict, Any, List

from loguru import logger
from sqlalchemy.ext.asyncio import async_sessionmaker

from domain.exceptions import CardNotFoundError, ProviderError
from infrastructure.payment.click_gateway import ClickGateway
from infrastructure.persistence.database import unit_of_work
from infrastructure.persistence.models.saved_card import SavedCard
from infrastructure.persistence.repositories import SavedCardRepository


def mask_card_number(card_number: str) -> str:
    return f"****{card_number[-4:]}"


class SavedCardUseCase:
    def __init__(self, session_factory: async_sessionmaker, gateway: ClickGateway):
        self._session_factory = session_factory
        self._gateway = gateway

    async def request_token(self, user_id: int, card_number: str, expire_date: str,
                            temporary: bool = False) -> Dict[str, Any]:
        """카드 토큰 요청: 인증 전까지 비활성 상태로 저장"""
        logger.debug(f"카드 토큰 요청: user={user_id}")
        result = await self._gateway.request_card_token(card_number, expire_date, temporary)
        if not result.success:
            raise ProviderError(result.error or "카드 토큰 요청에 실패했습니다.")
        card_token = result.get("card_token")
        if not card_token:
            raise ProviderError("Click 에서 카드 토큰을 받지 못했습니다.")

        async with unit_of_work(self._session_factory) as session:
            await SavedCardRepository(session).add(SavedCard(
                user_id=user_id, card_token=card_token, card_number="",
                card_number_masked=mask_card_number(card_number),
                phone_number=result.get("phone_number"), is_temporary=temporary, is_active=False,
            ))

        return {"success": True, "card_token": card_token, "phone_number": result.get("phone_number"),
                "message": "SMS 인증 코드가 발송되었습니다."}

    async def verify_token(self, user_id: int, card_token: str, sms_code: str) -> Dict[str, Any]:
        """SMS 코드 인증 후 카드 활성화"""
        logger.debug(f"카드 토큰 인증: user={user_id}")
        async with unit_of_work(self._session_factory) as session:
            if await SavedCardRepository(session).find(user_id, card_token) is None:
                raise CardNotFoundError()

        result = await self._gateway.verify_card_token(card_token, sms_code)
        if not result.success:
            raise ProviderError(result.error or "카드 인증에 실패했습니다.")
        card_number = result.get("card_number")
        if not card_number:
            raise ProviderError("Click 에서 카드 번호를 받지 못했습니다.")

        async with unit_of_work(self._session_factory) as session:
            card = await SavedCardRepository(session).find(user_id, card_token)
            if card is None:
                raise CardNotFoundError()
            card.card_number = card_number
            card.is_active = True

        logger.info(f"카드 인증 완료: user={user_id} card={card.card_number_masked}")
        return {"success": True, "card_token": card_token, "card_number": card_number,
                "message": "카드가 인증되어 저장되었습니다."}

    async def delete_token(self, user_id: int, card_token: str) -> Dict[str, Any]:
        """카드 삭제: 결제사 삭제가 확인된 경우에만 로컬 비활성화"""
        logger.debug(f"카드 토큰 삭제: user={user_id}")
        async with unit_of_work(self._session_factory) as session:
            if await SavedCardRepository(session).find(user_id, card_token) is None:
                raise CardNotFoundError()

        if not await self._gateway.delete_card_token(card_token):
            raise ProviderError("카드 토큰 삭제에 실패했습니다.")

        async with unit_of_work(self._session_factory) as session:
            card = await SavedCardRepository(session).find(user_id, card_token)
            if card is None:
                raise CardNotFoundError()
            card.deleted_at = datetime.utcnow()
            card.is_active = False

        return {"success": True, "message": "카드가 삭제되었습니다."}

    async def list_cards(self, user_id: int) -> List[SavedCard]:
        async with unit_of_work(self._session_factory) as session:
            return await SavedCardRepository(session).list_active(user_id)
