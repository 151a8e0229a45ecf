"""
esport/services/registration_gateway.py
Links completed payments to competition enrollment

Registration is idempotent per (user, competition): an active row is never
duplicated and a cancelled row is reactivated.
"""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from esport.errors import NotFoundError, InvalidStateError, ErrorCode
from esport.orm.activity_log import ActivityAction
from esport.orm.competition import Competition, CompetitionStatus, CompetitionRegistration, RegistrationStatus
from esport.orm.payment import Payment
from esport.services.activity_logger import log_activity

logger = logging.getLogger(__name__)


class RegistrationGateway:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def on_payment_completed(self, payment_id: int) -> Optional[bool]:
        """
        Enroll the payer of a completed payment.

        Returns the register() outcome, or None when the payment is not
        tied to a competition. Does not commit.
        """
        result = await self.db.execute(select(Payment).where(Payment.id == payment_id))
        payment = result.scalar_one_or_none()
        if payment is None:
            raise NotFoundError("Payment", payment_id, code=ErrorCode.PAYMENT_NOT_FOUND)

        if payment.competition_id is None:
            logger.info(f"Payment {payment_id} completed without competition; no registration")
            return None

        return await self.register(payment.user_id, payment.competition_id)

    async def check_can_register(self, competition: Competition, user_id: int) -> None:
        """
        Raise InvalidStateError unless the user may enroll now: the
        competition must be open and, when capped, have a free seat. A user
        already holding an active registration always passes.
        """
        if competition.status != CompetitionStatus.open:
            raise InvalidStateError(
                "Registrations are not open for this competition",
                code=ErrorCode.INVALID_STATE,
                details={"competition_id": competition.id, "status": competition.status.value}
            )

        if competition.max_participants:
            active = await self.list_registrations(competition.id)
            already = any(r.user_id == user_id for r in active)
            if not already and len(active) >= competition.max_participants:
                raise InvalidStateError(
                    "Competition is full",
                    code=ErrorCode.INVALID_STATE,
                    details={"competition_id": competition.id, "max_participants": competition.max_participants}
                )

    async def _find(self, user_id: int, competition_id: int) -> Optional[CompetitionRegistration]:
        result = await self.db.execute(
            select(CompetitionRegistration).where(
                CompetitionRegistration.user_id == user_id,
                CompetitionRegistration.competition_id == competition_id
            )
        )
        return result.scalar_one_or_none()

    async def register(self, user_id: int, competition_id: int) -> bool:
        """Ensure an active registration exists for the pair. Does not commit."""
        registration = await self._find(user_id, competition_id)

        if registration is not None and registration.status == RegistrationStatus.active:
            logger.debug(f"User {user_id} already registered to competition {competition_id}")
            return True

        if registration is None:
            registration = CompetitionRegistration(
                user_id=user_id,
                competition_id=competition_id,
                status=RegistrationStatus.active
            )
            self.db.add(registration)
        else:
            registration.status = RegistrationStatus.active

        await self.db.flush()

        log_activity(
            self.db,
            ActivityAction.registration_created,
            user_id=user_id,
            details={"competition_id": competition_id, "registration_id": registration.id}
        )
        logger.info(f"User {user_id} registered to competition {competition_id}")
        return True

    async def cancel(self, user_id: int, competition_id: int) -> bool:
        registration = await self._find(user_id, competition_id)
        if registration is None or registration.status != RegistrationStatus.active:
            return False

        registration.status = RegistrationStatus.cancelled
        await self.db.flush()

        log_activity(
            self.db,
            ActivityAction.registration_cancelled,
            user_id=user_id,
            details={"competition_id": competition_id}
        )
        logger.info(f"User {user_id} cancelled registration to competition {competition_id}")
        return True

    async def list_registrations(
        self,
        competition_id: int,
        include_cancelled: bool = False
    ) -> List[CompetitionRegistration]:
        query = select(CompetitionRegistration).where(
            CompetitionRegistration.competition_id == competition_id
        )
        if not include_cancelled:
            query = query.where(CompetitionRegistration.status == RegistrationStatus.active)
        query = query.order_by(CompetitionRegistration.created_at)

        result = await self.db.execute(query)
        return list(result.scalars().all())
