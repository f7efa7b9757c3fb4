"""저장 카드(토큰) ORM 모델"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from infrastructure.persistence.database import Base


class SavedCard(Base):
    __tablename__ = "saved_cards"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    card_token = Column(String(100), nullable=False, index=True)
    # 전체 카드번호는 SMS 인증 후에만 채워진다
    card_number = Column(String(32), default="", nullable=False)
    card_number_masked = Column(String(32), nullable=False)
    phone_number = Column(String(20), nullable=True)
    is_temporary = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=False, nullable=False)
    last_used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)
    user = relationship("User", back_populates="cards")

    def __repr__(self):
        return f"<SavedCard {self.card_number_masked} active={self.is_active}>"
