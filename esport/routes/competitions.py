"""
esport/routes/competitions.py
Competition listing, administration and registration
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from esport.config.feature_flags import feature_flags
from esport.config.settings import Settings, get_settings
from esport.database import get_db
from esport.errors import InvalidStateError, NotFoundError, ErrorCode
from esport.orm.competition import CompetitionStatus, RegistrationStatus
from esport.orm.user import User, UserRole
from esport.rbac import get_current_user, get_current_user_optional, require_role
from esport.services.competition_service import CompetitionService, CompetitionCreate, CompetitionUpdate
from esport.services.payment_service import PaymentService
from esport.services.registration_gateway import RegistrationGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/competitions", tags=["Competitions"])


def _is_admin(user: Optional[User]) -> bool:
    return user is not None and user.role == UserRole.admin


# ================= PUBLIC =================

@router.get("")
async def list_competitions(
    status: Optional[CompetitionStatus] = None,
    game: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: Optional[User] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    """Drafts are only listed for admins."""
    page = await CompetitionService(db).list(
        status=status, game=game, limit=limit, offset=offset,
        include_drafts=_is_admin(current_user)
    )
    return {
        "success": True,
        "competitions": [c.to_dict() for c in page["items"]],
        "total": page["total"],
        "limit": page["limit"],
        "offset": page["offset"],
    }


@router.get("/{competition_id}")
async def get_competition(
    competition_id: int,
    current_user: Optional[User] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    competition = await CompetitionService(db).get(competition_id)
    if competition.status == CompetitionStatus.draft and not _is_admin(current_user):
        raise NotFoundError("Competition", competition_id, code=ErrorCode.COMPETITION_NOT_FOUND)
    data = competition.to_dict()

    if current_user is not None:
        registrations = await RegistrationGateway(db).list_registrations(competition_id)
        data["is_registered"] = any(r.user_id == current_user.id for r in registrations)

    return {"success": True, "competition": data}


# ================= ADMIN =================

@router.post("", status_code=201)
async def create_competition(
    payload: CompetitionCreate,
    current_user: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    competition = await CompetitionService(db).create(payload, created_by=current_user.id)
    return {"success": True, "competition": competition.to_dict()}


@router.put("/{competition_id}")
async def update_competition(
    competition_id: int,
    payload: CompetitionUpdate,
    current_user: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    competition = await CompetitionService(db).update(
        competition_id,
        payload.model_dump(exclude_unset=True),
        updated_by=current_user.id
    )
    return {"success": True, "competition": competition.to_dict()}


@router.delete("/{competition_id}")
async def delete_competition(
    competition_id: int,
    current_user: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    await CompetitionService(db).delete(competition_id, deleted_by=current_user.id)
    return {"success": True, "message": "Competition deleted"}


@router.get("/{competition_id}/registrations")
async def list_registrations(
    competition_id: int,
    include_cancelled: bool = False,
    current_user: User = Depends(require_role(UserRole.admin, UserRole.moderator)),
    db: AsyncSession = Depends(get_db),
):
    await CompetitionService(db).get(competition_id)
    registrations = await RegistrationGateway(db).list_registrations(competition_id, include_cancelled)
    return {
        "success": True,
        "registrations": [r.to_dict() for r in registrations],
        "total": len(registrations),
    }


# ================= REGISTRATION =================

@router.post("/{competition_id}/register")
async def register_to_competition(
    competition_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Free competitions register immediately. Paid ones create a pending
    payment; the registration follows when the payment webhook completes it.
    """
    competition = await CompetitionService(db).get(competition_id)
    gateway = RegistrationGateway(db)
    await gateway.check_can_register(competition, current_user.id)

    if competition.is_free:
        await gateway.register(current_user.id, competition_id)
        await db.commit()
        return {"success": True, "registered": True, "status": RegistrationStatus.active.value}

    if not feature_flags.FEATURE_PAYMENTS:
        raise InvalidStateError("Paid registrations are disabled", code=ErrorCode.FEATURE_DISABLED)

    payment = await PaymentService(db, settings).create_payment({
        "user_id": current_user.id,
        "competition_id": competition_id,
        "amount": competition.registration_fee,
    })
    return {
        "success": True,
        "registered": False,
        "payment_required": True,
        "payment": payment.to_dict(),
    }


@router.delete("/{competition_id}/register")
async def cancel_registration(
    competition_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    cancelled = await RegistrationGateway(db).cancel(current_user.id, competition_id)
    await db.commit()
    return {"success": True, "cancelled": cancelled}
