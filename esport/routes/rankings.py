"""
esport/routes/rankings.py
Competition leaderboards
"""
import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from esport.database import get_db
from esport.orm.user import User, UserRole
from esport.rbac import require_role
from esport.services.competition_service import CompetitionService
from esport.services.ranking_calculator import RankingCalculator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rankings", tags=["Rankings"])


class RecomputeRequest(BaseModel):
    competition_id: int = Field(..., gt=0)


@router.get("")
async def get_ranking(
    competition_id: int = Query(..., gt=0),
    limit: int = Query(0, ge=0, le=1000),
    db: AsyncSession = Depends(get_db),
):
    """Ranking ordered by points then wins. limit=0 returns every player."""
    rows = await RankingCalculator(db).get_ranking(competition_id, limit)
    return {
        "success": True,
        "competition_id": competition_id,
        "ranking": [
            dict(entry.to_dict(username), position=position)
            for position, (entry, username) in enumerate(rows, start=1)
        ],
    }


@router.post("/recompute")
async def recompute_ranking(
    payload: RecomputeRequest,
    current_user: User = Depends(require_role(UserRole.admin, UserRole.moderator)),
    db: AsyncSession = Depends(get_db),
):
    await CompetitionService(db).get(payload.competition_id)
    entries = await RankingCalculator(db).recompute(payload.competition_id)
    await db.commit()

    logger.info(f"Ranking of competition {payload.competition_id} recomputed by user {current_user.id}")
    return {"success": True, "competition_id": payload.competition_id, "players": len(entries)}
