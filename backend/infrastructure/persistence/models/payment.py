"""결제 ORM 모델"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Numeric
from sqlalchemy.orm import relationship
from infrastructure.persistence.database import Base
from domain.enums import PaymentMethod, PaymentStatus


class Payment(Base):
    __tablename__ = "payments"
    id = Column(Integer, primary_key=True, index=True)
    # 주문당 결제는 최대 하나
    order_id = Column(String(36), ForeignKey("orders.id"), unique=True, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    method = Column(Enum(PaymentMethod), nullable=False)
    status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    external_transaction_id = Column(String(100), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)
    order = relationship("Order", back_populates="payment")
    transactions = relationship("Transaction", back_populates="payment")

    @property
    def prepare_id(self) -> int:
        """Click merchant_prepare_id / merchant_confirm_id"""
        return self.id

    def __repr__(self):
        return f"<Payment {self.id} - {self.status}>"
