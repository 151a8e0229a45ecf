"""
esport/orm/payment.py
Payment records; flipped to completed/failed by the provider webhook
"""
from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, Enum as SQLEnum

from esport.orm.base import BaseModel, isoformat


class PaymentStatus(str, PyEnum):
    pending = "pending"
    completed = "completed"
    failed = "failed"


# pending is the only state with outgoing transitions
PAYMENT_TRANSITIONS = {
    PaymentStatus.pending: {PaymentStatus.completed, PaymentStatus.failed},
    PaymentStatus.completed: set(),
    PaymentStatus.failed: set(),
}


class Payment(BaseModel):
    __tablename__ = "payments"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    competition_id = Column(Integer, ForeignKey("competitions.id", ondelete="SET NULL"), nullable=True, index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="EUR")
    payment_method = Column(String(50), nullable=False, default="stripe")

    status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.pending, index=True)
    transaction_id = Column(String(255), nullable=False, default="", index=True)

    def __repr__(self):
        return f"<Payment(id={self.id}, user={self.user_id}, status={self.status})>"

    def can_transition_to(self, new_status: PaymentStatus) -> bool:
        return new_status in PAYMENT_TRANSITIONS.get(self.status, set())

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "competition_id": self.competition_id,
            "amount": float(self.amount) if self.amount is not None else None,
            "currency": self.currency,
            "payment_method": self.payment_method,
            "status": self.status.value if self.status else None,
            "transaction_id": self.transaction_id,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
