"""
esport/services/ranking_calculator.py
Per-competition leaderboard computed from validated results

Scoring: win = 3 points, draw = 1 point each, loss = 0.
Ranking order: points DESC, then wins DESC. Players still tied after
that have no defined order.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Tuple

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from esport.orm.ranking import RankingEntry
from esport.orm.result import Result, ResultStatus
from esport.orm.user import User

logger = logging.getLogger(__name__)

POINTS_WIN = 3
POINTS_DRAW = 1
POINTS_LOSS = 0


@dataclass
class PlayerTally:
    points: int = 0
    matches_played: int = 0
    wins: int = 0
    losses: int = 0


def tally_results(results) -> Dict[int, PlayerTally]:
    """Aggregate a list of validated results into per-player tallies."""
    tallies: Dict[int, PlayerTally] = defaultdict(PlayerTally)

    for result in results:
        p1 = tallies[result.player1_id]
        p2 = tallies[result.player2_id]
        p1.matches_played += 1
        p2.matches_played += 1

        if result.player1_score > result.player2_score:
            p1.points += POINTS_WIN
            p1.wins += 1
            p2.points += POINTS_LOSS
            p2.losses += 1
        elif result.player1_score < result.player2_score:
            p2.points += POINTS_WIN
            p2.wins += 1
            p1.points += POINTS_LOSS
            p1.losses += 1
        else:
            p1.points += POINTS_DRAW
            p2.points += POINTS_DRAW

    return dict(tallies)


def _same_tally(entry: RankingEntry, tally: PlayerTally) -> bool:
    return (entry.points, entry.matches_played, entry.wins, entry.losses) == (
        tally.points, tally.matches_played, tally.wins, tally.losses
    )


class RankingCalculator:
    """Recomputes and serves RankingEntry rows for a competition."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def recompute(self, competition_id: int) -> List[RankingEntry]:
        """
        Rebuild the ranking of a competition from every validated result.

        Full recomputation on each call, then one upsert per player keyed by
        (competition_id, player_id). Calling it twice with no new validated
        results leaves identical rows. Flushes but does not commit; the
        caller owns the transaction.
        """
        result = await self.db.execute(
            select(Result).where(
                Result.competition_id == competition_id,
                Result.status == ResultStatus.validated
            )
        )
        validated = result.scalars().all()
        tallies = tally_results(validated)

        existing_result = await self.db.execute(
            select(RankingEntry).where(RankingEntry.competition_id == competition_id)
        )
        existing = {entry.player_id: entry for entry in existing_result.scalars().all()}

        now = datetime.utcnow()
        entries = []
        for player_id, tally in tallies.items():
            entry = existing.get(player_id)
            if entry is None:
                entry = RankingEntry(competition_id=competition_id, player_id=player_id, created_at=now)
                self.db.add(entry)
            elif _same_tally(entry, tally):
                # unchanged rows are left untouched, updated_at included
                entries.append(entry)
                continue
            entry.points = tally.points
            entry.matches_played = tally.matches_played
            entry.wins = tally.wins
            entry.losses = tally.losses
            entry.updated_at = now
            entries.append(entry)

        await self.db.flush()

        logger.info(
            f"Rankings recomputed for competition {competition_id}: "
            f"{len(validated)} validated results, {len(entries)} players"
        )
        return entries

    async def get_ranking(self, competition_id: int, limit: int = 0) -> List[Tuple[RankingEntry, str]]:
        """
        Ranking entries with the player's username, best first.
        limit=0 means unbounded.
        """
        query = (
            select(RankingEntry, User.username)
            .outerjoin(User, User.id == RankingEntry.player_id)
            .where(RankingEntry.competition_id == competition_id)
            .order_by(desc(RankingEntry.points), desc(RankingEntry.wins))
        )
        if limit and limit > 0:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return [(entry, username) for entry, username in result.all()]
