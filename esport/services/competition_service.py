"""
esport/services/competition_service.py
Competition CRUD with filters and pagination
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, model_validator
from sqlalchemy import select, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from esport.errors import ValidationError, NotFoundError, ErrorCode
from esport.orm.activity_log import ActivityAction
from esport.orm.competition import Competition, CompetitionStatus
from esport.services.activity_logger import log_activity

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

# Fields an update may touch
UPDATABLE_FIELDS = (
    "name", "game", "description", "start_date", "end_date",
    "registration_fee", "max_participants", "status",
)


class CompetitionCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=255)
    game: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = ""
    start_date: datetime
    end_date: datetime
    registration_fee: Decimal = Field(Decimal("0"), ge=0)
    max_participants: int = Field(0, ge=0)
    status: CompetitionStatus = CompetitionStatus.draft

    @model_validator(mode="after")
    def dates_in_order(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class CompetitionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=255)
    game: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    registration_fee: Optional[Decimal] = Field(None, ge=0)
    max_participants: Optional[int] = Field(None, ge=0)
    status: Optional[CompetitionStatus] = None


def _parse(model, data, message: str):
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(dict(data or {}))
    except PydanticValidationError as e:
        raise ValidationError(
            message,
            code=ErrorCode.INVALID_INPUT,
            details={"errors": [
                {"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in e.errors()
            ]}
        )


class CompetitionService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        data: Union[CompetitionCreate, Mapping[str, Any]],
        created_by: Optional[int] = None
    ) -> Competition:
        data = _parse(CompetitionCreate, data, "Invalid competition")

        competition = Competition(**data.model_dump())
        self.db.add(competition)
        await self.db.flush()

        log_activity(
            self.db,
            ActivityAction.competition_created,
            user_id=created_by,
            details={"competition_id": competition.id, "name": competition.name}
        )
        await self.db.commit()

        logger.info(f"Competition created: {competition.id} ({competition.name})")
        return competition

    async def get(self, competition_id: int) -> Competition:
        result = await self.db.execute(select(Competition).where(Competition.id == competition_id))
        competition = result.scalar_one_or_none()
        if competition is None:
            raise NotFoundError("Competition", competition_id, code=ErrorCode.COMPETITION_NOT_FOUND)
        return competition

    async def list(
        self,
        status: Optional[Union[CompetitionStatus, str]] = None,
        game: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
        include_drafts: bool = True
    ) -> Dict[str, Any]:
        """
        One page of competitions, most recent start date first, plus the total.
        Drafts are left out unless include_drafts is set.
        """
        if limit < 1 or limit > MAX_PAGE_SIZE or offset < 0:
            raise ValidationError(
                f"limit must be between 1 and {MAX_PAGE_SIZE} and offset must be >= 0",
                code=ErrorCode.INVALID_INPUT,
                details={"limit": limit, "offset": offset}
            )

        query = select(Competition)
        if status:
            try:
                query = query.where(Competition.status == CompetitionStatus(status))
            except ValueError:
                raise ValidationError(
                    f"Invalid status '{status}'",
                    code=ErrorCode.INVALID_INPUT,
                    details={"allowed": [s.value for s in CompetitionStatus]}
                )
        if game:
            query = query.where(Competition.game == game)
        if not include_drafts:
            query = query.where(Competition.status != CompetitionStatus.draft)

        total_result = await self.db.execute(select(func.count()).select_from(query.subquery()))
        total = total_result.scalar_one()

        result = await self.db.execute(
            query.order_by(desc(Competition.start_date), desc(Competition.id)).limit(limit).offset(offset)
        )
        return {
            "items": list(result.scalars().all()),
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    async def update(
        self,
        competition_id: int,
        data: Union[CompetitionUpdate, Mapping[str, Any]],
        updated_by: Optional[int] = None
    ) -> Competition:
        data = _parse(CompetitionUpdate, data, "Invalid competition update")
        competition = await self.get(competition_id)

        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items()
                   if k in UPDATABLE_FIELDS and v is not None}

        start = changes.get("start_date", competition.start_date)
        end = changes.get("end_date", competition.end_date)
        if start and end and end < start:
            raise ValidationError("end_date must not be before start_date", code=ErrorCode.INVALID_INPUT)

        for field, value in changes.items():
            setattr(competition, field, value)
        await self.db.flush()

        log_activity(
            self.db,
            ActivityAction.competition_updated,
            user_id=updated_by,
            details={"competition_id": competition_id, "fields": sorted(changes)}
        )
        await self.db.commit()
        return competition

    async def delete(self, competition_id: int, deleted_by: Optional[int] = None) -> None:
        competition = await self.get(competition_id)
        await self.db.delete(competition)

        log_activity(
            self.db,
            ActivityAction.competition_deleted,
            user_id=deleted_by,
            details={"competition_id": competition_id, "name": competition.name}
        )
        await self.db.commit()
        logger.info(f"Competition deleted: {competition_id}")

