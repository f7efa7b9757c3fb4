"""
ORM 모델: 모든 모델을 re-export
"""
from infrastructure.persistence.database import Base
from infrastructure.persistence.models.user import User
from infrastructure.persistence.models.order import Order
from infrastructure.persistence.models.payment import Payment
from infrastructure.persistence.models.transaction import Transaction
from infrastructure.persistence.models.saved_card import SavedCard
from domain.enums import (
    UserRole, OrderStatus, PaymentMethod, PaymentStatus, TransactionType, TransactionStatus,
)
