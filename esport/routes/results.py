"""
esport/routes/results.py
Match result submission, two-sided validation and listing

Players validate as themselves: the player id is always the caller's id.
"""
import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from esport.database import get_db
from esport.errors import NotAuthorizedError, InvalidStateError, ErrorCode
from esport.orm.competition import CompetitionStatus
from esport.orm.user import User, UserRole
from esport.rbac import get_current_user
from esport.services.competition_service import CompetitionService
from esport.services.registration_gateway import RegistrationGateway
from esport.services.result_store import ResultStore, ResultSubmission

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/results", tags=["Results"])

STAFF_ROLES = (UserRole.admin, UserRole.moderator)

# Competitions in which no match can be played
CLOSED_TO_RESULTS = (CompetitionStatus.draft, CompetitionStatus.cancelled)


class ResultActionRequest(BaseModel):
    result_id: int = Field(..., gt=0)


@router.post("/submit", status_code=201)
async def submit_result(
    payload: ResultSubmission,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Players submit their own matches; staff may submit any match. Both
    players must hold an active registration, and the competition must be
    neither a draft nor cancelled.
    """
    if current_user.role not in STAFF_ROLES and current_user.id not in (payload.player1_id, payload.player2_id):
        raise NotAuthorizedError(
            "Only a player of the match can submit its result",
            code=ErrorCode.NOT_PARTICIPANT
        )

    competition = await CompetitionService(db).get(payload.competition_id)
    if competition.status in CLOSED_TO_RESULTS:
        raise InvalidStateError(
            "Results cannot be submitted for this competition",
            code=ErrorCode.INVALID_STATE,
            details={"competition_id": competition.id, "status": competition.status.value}
        )

    registered = {r.user_id for r in await RegistrationGateway(db).list_registrations(competition.id)}
    unregistered = [p for p in (payload.player1_id, payload.player2_id) if p not in registered]
    if unregistered:
        raise InvalidStateError(
            "Both players must be registered to the competition",
            code=ErrorCode.INVALID_STATE,
            details={"competition_id": competition.id, "unregistered": unregistered}
        )

    store = ResultStore(db)
    result_id = await store.submit(payload, submitted_by=current_user.id)
    result = await store.get(result_id)
    return {"success": True, "result_id": result_id, "result": result.to_dict()}


@router.post("/validate")
async def validate_result(
    payload: ResultActionRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    store = ResultStore(db)
    validated = await store.validate(payload.result_id, current_user.id)
    result = await store.get(payload.result_id)
    return {"success": validated, "result": result.to_dict()}


@router.post("/contest")
async def contest_result(
    payload: ResultActionRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    store = ResultStore(db)
    contested = await store.contest(payload.result_id, current_user.id)
    result = await store.get(payload.result_id)
    return {"success": contested, "result": result.to_dict()}


@router.get("")
async def list_results(
    competition_id: int = Query(..., gt=0),
    status: str = Query("all"),
    db: AsyncSession = Depends(get_db),
):
    rows = await ResultStore(db).list_with_usernames(competition_id, status)
    return {
        "success": True,
        "results": [
            dict(result.to_dict(), player1_username=name1, player2_username=name2)
            for result, name1, name2 in rows
        ],
        "total": len(rows),
    }
