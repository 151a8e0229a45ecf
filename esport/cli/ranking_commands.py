"""
Ranking CLI commands: recompute
"""
import asyncio
import logging
from typing import List

from sqlalchemy import select

from esport.database import build_engine, build_sessionmaker
from esport.orm.competition import Competition
from esport.services.ranking_calculator import RankingCalculator

logger = logging.getLogger(__name__)


class RankingCommand:
    """Ranking CLI command handler."""

    def __init__(self, settings, dry_run: bool = False):
        self.settings = settings
        self.dry_run = dry_run

    def execute(self, args) -> int:
        if args.rankings_action == "recompute":
            return self._recompute(args)
        print("Error: Unknown rankings action")
        return 1

    def _recompute(self, args) -> int:
        print("=== Ranking Recompute ===")
        counts = asyncio.run(self._async_recompute(args.competition, args.all))

        for competition_id, players in counts:
            print(f"  competition {competition_id}: {players} players")
        if self.dry_run:
            print("[DRY RUN] Changes rolled back")
        return 0

    async def _async_recompute(self, competition_id, every: bool) -> List[tuple]:
        engine = build_engine(self.settings.db_connection)
        session_factory = build_sessionmaker(engine)
        counts = []
        try:
            async with session_factory() as db:
                if every:
                    result = await db.execute(select(Competition.id).order_by(Competition.id))
                    competition_ids = list(result.scalars().all())
                else:
                    competition_ids = [competition_id]

                calculator = RankingCalculator(db)
                for cid in competition_ids:
                    entries = await calculator.recompute(cid)
                    counts.append((cid, len(entries)))

                if self.dry_run:
                    await db.rollback()
                else:
                    await db.commit()
        finally:
            await engine.dispose()
        return counts
