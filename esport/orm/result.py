"""
esport/orm/result.py
Submitted match results awaiting confirmation by both players
"""
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, Integer, Boolean, DateTime, ForeignKey, CheckConstraint, Index,
    Enum as SQLEnum
)

from esport.orm.base import BaseModel, isoformat


class ResultStatus(str, PyEnum):
    pending = "pending"          # Waiting for one or both players
    validated = "validated"      # Both players confirmed, counts for ranking
    contested = "contested"      # A player disputes the score


class Result(BaseModel):
    __tablename__ = "results"
    __table_args__ = (
        CheckConstraint("player1_score >= 0", name="ck_results_player1_score"),
        CheckConstraint("player2_score >= 0", name="ck_results_player2_score"),
        CheckConstraint("player1_id <> player2_id", name="ck_results_distinct_players"),
        Index("ix_results_competition_status", "competition_id", "status"),
    )

    competition_id = Column(Integer, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False, index=True)

    player1_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    player2_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    player1_score = Column(Integer, nullable=False)
    player2_score = Column(Integer, nullable=False)

    match_date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    # Each player only ever writes their own flag
    player1_validated = Column(Boolean, nullable=False, default=False)
    player2_validated = Column(Boolean, nullable=False, default=False)
    player1_validated_at = Column(DateTime, nullable=True)
    player2_validated_at = Column(DateTime, nullable=True)

    status = Column(SQLEnum(ResultStatus), nullable=False, default=ResultStatus.pending)
    submitted_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    def __repr__(self):
        return (f"<Result(id={self.id}, competition={self.competition_id}, "
                f"{self.player1_id} {self.player1_score}-{self.player2_score} {self.player2_id}, "
                f"status={self.status})>")

    def participant_flag(self, player_id: int):
        """Name of the validation flag column owned by player_id, or None."""
        if self.player1_id == player_id:
            return "player1_validated"
        if self.player2_id == player_id:
            return "player2_validated"
        return None

    @property
    def winner_id(self):
        if self.player1_score > self.player2_score:
            return self.player1_id
        if self.player2_score > self.player1_score:
            return self.player2_id
        return None

    def to_dict(self):
        return {
            "id": self.id,
            "competition_id": self.competition_id,
            "player1_id": self.player1_id,
            "player2_id": self.player2_id,
            "player1_score": self.player1_score,
            "player2_score": self.player2_score,
            "match_date": isoformat(self.match_date),
            "player1_validated": self.player1_validated,
            "player2_validated": self.player2_validated,
            "status": self.status.value if self.status else None,
            "winner_id": self.winner_id,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
