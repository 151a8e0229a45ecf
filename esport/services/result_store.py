"""
esport/services/result_store.py
Match result submission and two-sided validation

A result is stored as pending. Each participant confirms it on their own;
when both flags are set the result becomes validated and the competition
ranking is recomputed in the same transaction.
"""
import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, model_validator
from sqlalchemy import select, update, desc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from esport.errors import ValidationError, NotFoundError, NotAuthorizedError, ErrorCode
from esport.orm.activity_log import ActivityAction
from esport.orm.result import Result, ResultStatus
from esport.orm.user import User
from esport.services.activity_logger import log_activity
from esport.services.ranking_calculator import RankingCalculator

logger = logging.getLogger(__name__)

STATUS_FILTERS = ("all",) + tuple(s.value for s in ResultStatus)


class ResultSubmission(BaseModel):
    """Validated input for ResultStore.submit"""
    competition_id: int = Field(..., gt=0)
    player1_id: int = Field(..., gt=0)
    player2_id: int = Field(..., gt=0)
    player1_score: int = Field(..., ge=0)
    player2_score: int = Field(..., ge=0)
    match_date: Optional[datetime] = None

    @model_validator(mode="after")
    def distinct_players(self):
        if self.player1_id == self.player2_id:
            raise ValueError("player1_id and player2_id must be different players")
        return self


def _validation_details(exc: PydanticValidationError) -> dict:
    return {
        "errors": [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ]
    }


class ResultStore:
    """Persists results and their per-player validation flags."""

    def __init__(self, db: AsyncSession, rankings: Optional[RankingCalculator] = None):
        self.db = db
        self.rankings = rankings or RankingCalculator(db)

    async def submit(
        self,
        data: Union[ResultSubmission, Mapping[str, Any]],
        submitted_by: Optional[int] = None
    ) -> int:
        """
        Insert a new pending result and return its id.

        Raises:
            ValidationError: missing, wrong-typed or negative fields, or the
                same player on both sides
        """
        if not isinstance(data, ResultSubmission):
            try:
                data = ResultSubmission.model_validate(dict(data or {}))
            except PydanticValidationError as e:
                raise ValidationError(
                    "Invalid result submission",
                    code=ErrorCode.MISSING_FIELD,
                    details=_validation_details(e)
                )

        result = Result(
            competition_id=data.competition_id,
            player1_id=data.player1_id,
            player2_id=data.player2_id,
            player1_score=data.player1_score,
            player2_score=data.player2_score,
            match_date=data.match_date or datetime.utcnow(),
            player1_validated=False,
            player2_validated=False,
            status=ResultStatus.pending,
            submitted_by=submitted_by
        )
        self.db.add(result)
        await self.db.flush()

        log_activity(
            self.db,
            ActivityAction.result_submitted,
            user_id=submitted_by,
            details={"result_id": result.id, "competition_id": result.competition_id}
        )
        await self.db.commit()

        logger.info(
            f"Result submitted: id={result.id}, competition={result.competition_id}, "
            f"player1={result.player1_id}, player2={result.player2_id}"
        )
        return result.id

    async def get(self, result_id: int) -> Result:
        # rows are changed with Core UPDATEs, so refresh any identity-mapped copy
        result = await self.db.execute(
            select(Result)
            .where(Result.id == result_id)
            .execution_options(populate_existing=True)
        )
        found = result.scalar_one_or_none()
        if found is None:
            raise NotFoundError("Result", result_id, code=ErrorCode.RESULT_NOT_FOUND)
        return found

    async def validate(self, result_id: int, player_id: int) -> bool:
        """
        Record player_id's confirmation of a result.

        Only the caller's own flag is written. Both flags are read back in
        the same transaction after the write, and the pending -> validated
        flip is guarded on status so concurrent final validations trigger a
        single transition and a single ranking recomputation.

        Returns:
            True when the flag was written, False when the result is
            contested (nothing is changed).

        Raises:
            NotFoundError: no such result
            NotAuthorizedError: player_id is not one of the two players
        """
        result = await self.get(result_id)

        flag = result.participant_flag(player_id)
        if flag is None:
            logger.warning(f"Player {player_id} tried to validate result {result_id} they did not play")
            raise NotAuthorizedError(
                "Only the players of this match can validate its result",
                code=ErrorCode.NOT_PARTICIPANT,
                details={"result_id": result_id, "player_id": player_id}
            )

        if result.status == ResultStatus.contested:
            logger.info(f"Result {result_id} is contested; validation by {player_id} ignored")
            return False

        competition_id = result.competition_id
        now = datetime.utcnow()

        written = await self.db.execute(
            update(Result)
            .where(Result.id == result_id)
            .values({flag: True, f"{flag}_at": now, "updated_at": now})
            .execution_options(synchronize_session=False)
        )
        if written.rowcount != 1:
            await self.db.rollback()
            return False

        flags = await self.db.execute(
            select(Result.player1_validated, Result.player2_validated)
            .where(Result.id == result_id)
        )
        player1_validated, player2_validated = flags.one()

        if player1_validated and player2_validated:
            flipped = await self.db.execute(
                update(Result)
                .where(Result.id == result_id, Result.status == ResultStatus.pending)
                .values(status=ResultStatus.validated, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if flipped.rowcount == 1:
                await self.rankings.recompute(competition_id)
                logger.info(f"Result {result_id} validated by both players")

        log_activity(
            self.db,
            ActivityAction.result_validated,
            user_id=player_id,
            details={"result_id": result_id, "competition_id": competition_id}
        )
        await self.db.commit()
        return True

    async def contest(self, result_id: int, player_id: int) -> bool:
        """
        Mark a pending result as contested by one of its players.

        Returns False (no change) when the result is no longer pending.
        """
        result = await self.get(result_id)

        if result.participant_flag(player_id) is None:
            raise NotAuthorizedError(
                "Only the players of this match can contest its result",
                code=ErrorCode.NOT_PARTICIPANT,
                details={"result_id": result_id, "player_id": player_id}
            )

        changed = await self.db.execute(
            update(Result)
            .where(Result.id == result_id, Result.status == ResultStatus.pending)
            .values(status=ResultStatus.contested, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if changed.rowcount != 1:
            await self.db.rollback()
            return False

        log_activity(
            self.db,
            ActivityAction.result_contested,
            user_id=player_id,
            details={"result_id": result_id}
        )
        await self.db.commit()
        logger.info(f"Result {result_id} contested by player {player_id}")
        return True

    def _listing(self, query, competition_id: int, status_filter: str):
        if status_filter not in STATUS_FILTERS:
            raise ValidationError(
                f"Invalid status. Must be one of: {', '.join(STATUS_FILTERS)}",
                code=ErrorCode.INVALID_INPUT,
                details={"field": "status", "value": status_filter}
            )

        query = query.where(Result.competition_id == competition_id)
        if status_filter != "all":
            query = query.where(Result.status == ResultStatus(status_filter))
        return query.order_by(desc(Result.match_date)).execution_options(populate_existing=True)

    async def list(self, competition_id: int, status_filter: str = "all") -> List[Result]:
        """All results of a competition, newest match first."""
        result = await self.db.execute(self._listing(select(Result), competition_id, status_filter))
        return list(result.scalars().all())

    async def list_with_usernames(
        self,
        competition_id: int,
        status_filter: str = "all"
    ) -> List[Tuple[Result, Optional[str], Optional[str]]]:
        """Same rows as list(), each with both players' usernames (None for unknown users)."""
        player1 = aliased(User)
        player2 = aliased(User)
        query = (
            select(Result, player1.username, player2.username)
            .outerjoin(player1, player1.id == Result.player1_id)
            .outerjoin(player2, player2.id == Result.player2_id)
        )
        result = await self.db.execute(self._listing(query, competition_id, status_filter))
        return [(row, name1, name2) for row, name1, name2 in result.all()]
