"""
esport/orm/ranking.py
Per-player standing within one competition
"""
from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint, Index

from esport.orm.base import BaseModel, isoformat


class RankingEntry(BaseModel):
    """
    Aggregate of a player's validated results in a competition.
    Rows are rewritten by a full recomputation, never patched.
    """
    __tablename__ = "rankings"
    __table_args__ = (
        UniqueConstraint("competition_id", "player_id", name="uq_rankings_competition_player"),
        Index("ix_rankings_order", "competition_id", "points", "wins"),
    )

    competition_id = Column(Integer, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False, index=True)
    player_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    points = Column(Integer, nullable=False, default=0)
    matches_played = Column(Integer, nullable=False, default=0)
    wins = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<RankingEntry(competition={self.competition_id}, player={self.player_id}, points={self.points})>"

    @property
    def draws(self) -> int:
        return self.matches_played - self.wins - self.losses

    def to_dict(self, username=None):
        data = {
            "competition_id": self.competition_id,
            "player_id": self.player_id,
            "points": self.points,
            "matches_played": self.matches_played,
            "wins": self.wins,
            "losses": self.losses,
            "draws": self.draws,
            "updated_at": isoformat(self.updated_at),
        }
        if username is not None:
            data["username"] = username
        return data
