"""
esport/orm/competition.py
Competitions and the registrations linking users to them
"""
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, Integer, String, DateTime, Text, Numeric, ForeignKey,
    UniqueConstraint, Enum as SQLEnum
)

from esport.orm.base import BaseModel, isoformat


class CompetitionStatus(str, PyEnum):
    """Competition lifecycle status"""
    draft = "draft"              # Being configured (admin only)
    open = "open"                # Registrations open
    ongoing = "ongoing"          # Matches being played
    completed = "completed"      # Final ranking
    cancelled = "cancelled"


class RegistrationStatus(str, PyEnum):
    active = "active"
    cancelled = "cancelled"


class Competition(BaseModel):
    __tablename__ = "competitions"

    name = Column(String(255), nullable=False)
    game = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True, default="")

    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=False)

    registration_fee = Column(Numeric(10, 2), nullable=False, default=0)
    max_participants = Column(Integer, nullable=False, default=0)  # 0 = unlimited

    status = Column(SQLEnum(CompetitionStatus), nullable=False, default=CompetitionStatus.draft, index=True)

    def __repr__(self):
        return f"<Competition(id={self.id}, name={self.name}, game={self.game})>"

    @property
    def is_free(self) -> bool:
        return not self.registration_fee or float(self.registration_fee) == 0

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "game": self.game,
            "description": self.description,
            "start_date": isoformat(self.start_date),
            "end_date": isoformat(self.end_date),
            "registration_fee": float(self.registration_fee or 0),
            "max_participants": self.max_participants,
            "status": self.status.value if self.status else None,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class CompetitionRegistration(BaseModel):
    """One row per (user, competition); cancelled rows are reactivated, never duplicated"""
    __tablename__ = "competition_registrations"
    __table_args__ = (
        UniqueConstraint("user_id", "competition_id", name="uq_registration_user_competition"),
    )

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    competition_id = Column(Integer, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(SQLEnum(RegistrationStatus), nullable=False, default=RegistrationStatus.active)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "competition_id": self.competition_id,
            "status": self.status.value if self.status else None,
            "created_at": isoformat(self.created_at),
        }
