"""
esport/services/payment_service.py
Payment records and their webhook-driven status changes

State machine:
    pending -> completed   (enrolls the payer when tied to a competition)
    pending -> failed      (terminal, no side effect)
"""
import hashlib
import hmac
import logging
from decimal import Decimal
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from esport.config.settings import Settings
from esport.errors import ValidationError, NotFoundError, InvalidStateError, ErrorCode
from esport.orm.activity_log import ActivityAction
from esport.orm.payment import Payment, PaymentStatus
from esport.services.activity_logger import log_activity
from esport.services.competition_service import CompetitionService
from esport.services.registration_gateway import RegistrationGateway

logger = logging.getLogger(__name__)


class PaymentCreate(BaseModel):
    user_id: int = Field(..., gt=0)
    competition_id: Optional[int] = Field(None, gt=0)
    amount: Decimal = Field(..., ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_method: Optional[str] = Field(None, max_length=50)
    transaction_id: str = ""


def compute_signature(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of a webhook body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    if not secret or not signature:
        return False
    return hmac.compare_digest(compute_signature(secret, body), signature.strip().lower())


class PaymentService:

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings
        self.registrations = RegistrationGateway(db)

    async def create_payment(self, data: Union[PaymentCreate, Mapping[str, Any]]) -> Payment:
        if not isinstance(data, PaymentCreate):
            try:
                data = PaymentCreate.model_validate(dict(data or {}))
            except PydanticValidationError as e:
                raise ValidationError(
                    "Invalid payment",
                    code=ErrorCode.INVALID_INPUT,
                    details={"errors": [err.get("msg") for err in e.errors()]}
                )

        if data.competition_id is not None:
            await self._check_competition_payment(data)

        payment = Payment(
            user_id=data.user_id,
            competition_id=data.competition_id,
            amount=data.amount,
            currency=(data.currency or self.settings.payment_currency).upper(),
            payment_method=data.payment_method or self.settings.payment_gateway,
            status=PaymentStatus.pending,
            transaction_id=data.transaction_id
        )
        self.db.add(payment)
        await self.db.flush()

        log_activity(
            self.db,
            ActivityAction.payment_created,
            user_id=data.user_id,
            details={"payment_id": payment.id, "competition_id": data.competition_id,
                     "amount": str(data.amount)}
        )
        await self.db.commit()

        logger.info(f"Payment {payment.id} created for user {payment.user_id}: {payment.amount} {payment.currency}")
        return payment

    async def _check_competition_payment(self, data: PaymentCreate) -> None:
        """A competition payment must buy a seat that is available, at its fee."""
        competition = await CompetitionService(self.db).get(data.competition_id)
        await self.registrations.check_can_register(competition, data.user_id)

        fee = Decimal(str(competition.registration_fee or 0))
        if data.amount != fee:
            raise ValidationError(
                "Payment amount does not match the registration fee",
                code=ErrorCode.INVALID_INPUT,
                details={"competition_id": competition.id, "expected": str(fee), "amount": str(data.amount)}
            )

    async def get_payment(self, payment_id: int) -> Payment:
        result = await self.db.execute(select(Payment).where(Payment.id == payment_id))
        payment = result.scalar_one_or_none()
        if payment is None:
            raise NotFoundError("Payment", payment_id, code=ErrorCode.PAYMENT_NOT_FOUND)
        return payment

    async def update_status(
        self,
        payment_id: int,
        new_status: Union[PaymentStatus, str],
        transaction_id: Optional[str] = None
    ) -> Payment:
        """
        Apply a provider status change.

        Re-delivery of the current status is a no-op. Completion enrolls the
        payer in the same transaction.
        """
        try:
            new_status = PaymentStatus(new_status)
        except ValueError:
            raise ValidationError(
                f"Invalid payment status '{new_status}'",
                code=ErrorCode.INVALID_INPUT,
                details={"allowed": [s.value for s in PaymentStatus]}
            )

        payment = await self.get_payment(payment_id)

        if payment.status == new_status:
            logger.info(f"Payment {payment_id} already {new_status.value}; ignoring re-delivery")
            return payment

        if not payment.can_transition_to(new_status):
            raise InvalidStateError(
                f"Cannot change payment from {payment.status.value} to {new_status.value}",
                code=ErrorCode.STATE_TRANSITION_INVALID,
                details={"payment_id": payment_id, "current": payment.status.value,
                         "requested": new_status.value}
            )

        old_status = payment.status
        payment.status = new_status
        if transaction_id:
            payment.transaction_id = transaction_id
        await self.db.flush()

        if new_status == PaymentStatus.completed:
            await self.registrations.on_payment_completed(payment.id)

        log_activity(
            self.db,
            ActivityAction.payment_status_changed,
            user_id=payment.user_id,
            details={"payment_id": payment.id, "from": old_status.value, "to": new_status.value}
        )
        await self.db.commit()

        logger.info(f"Payment {payment_id}: {old_status.value} -> {new_status.value}")
        return payment
