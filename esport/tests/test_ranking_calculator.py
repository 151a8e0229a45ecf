"""
Ranking calculator tests

Coverage:
- Point allocation (win / draw / loss)
- Only validated results count
- Upsert keyed by (competition, player)
- Idempotent recomputation
- Ordering by points then wins, limit handling
"""
from datetime import datetime
from types import SimpleNamespace

import pytest
from sqlalchemy import select, func

from esport.orm import Result, ResultStatus, RankingEntry
from esport.services.ranking_calculator import RankingCalculator, tally_results, POINTS_WIN, POINTS_DRAW
from esport.tests.conftest import make_user


def match(p1, p2, s1, s2):
    return SimpleNamespace(player1_id=p1, player2_id=p2, player1_score=s1, player2_score=s2)


async def add_result(db, competition_id, p1, p2, s1, s2, status=ResultStatus.validated):
    result = Result(
        competition_id=competition_id,
        player1_id=p1,
        player2_id=p2,
        player1_score=s1,
        player2_score=s2,
        match_date=datetime(2026, 3, 1),
        player1_validated=status == ResultStatus.validated,
        player2_validated=status == ResultStatus.validated,
        status=status
    )
    db.add(result)
    await db.commit()
    return result


# =============================================================================
# Tally
# =============================================================================

class TestTally:

    def test_win_gives_three_points_to_winner_only(self):
        tallies = tally_results([match(1, 2, 3, 1)])

        assert tallies[1].points == POINTS_WIN
        assert tallies[1].wins == 1
        assert tallies[1].losses == 0
        assert tallies[2].points == 0
        assert tallies[2].losses == 1
        assert tallies[1].matches_played == tallies[2].matches_played == 1

    def test_draw_gives_one_point_each(self):
        tallies = tally_results([match(1, 2, 2, 2)])

        assert tallies[1].points == tallies[2].points == POINTS_DRAW
        assert tallies[1].wins == tallies[2].wins == 0
        assert tallies[1].losses == tallies[2].losses == 0

    def test_player2_can_win(self):
        tallies = tally_results([match(1, 2, 0, 5)])
        assert tallies[2].points == 3
        assert tallies[1].losses == 1

    def test_accumulates_across_matches(self):
        tallies = tally_results([match(1, 2, 1, 0), match(1, 3, 1, 1), match(3, 1, 4, 2)])

        assert tallies[1].matches_played == 3
        assert tallies[1].points == 4
        assert (tallies[1].wins, tallies[1].losses) == (1, 1)
        assert tallies[3].points == 4

    def test_empty(self):
        assert tally_results([]) == {}


# =============================================================================
# Recompute
# =============================================================================

class TestRecompute:

    @pytest.mark.asyncio
    async def test_only_validated_results_count(self, db_session, players):
        alice, bob = players
        await add_result(db_session, 1, alice.id, bob.id, 3, 0)
        await add_result(db_session, 1, alice.id, bob.id, 0, 3, status=ResultStatus.pending)
        await add_result(db_session, 1, alice.id, bob.id, 0, 3, status=ResultStatus.contested)

        entries = await RankingCalculator(db_session).recompute(1)
        by_player = {e.player_id: e for e in entries}

        assert by_player[alice.id].points == 3
        assert by_player[alice.id].matches_played == 1
        assert by_player[bob.id].points == 0
        assert by_player[bob.id].losses == 1

    @pytest.mark.asyncio
    async def test_competitions_are_independent(self, db_session, players):
        alice, bob = players
        await add_result(db_session, 1, alice.id, bob.id, 3, 0)
        await add_result(db_session, 2, alice.id, bob.id, 0, 3)

        await RankingCalculator(db_session).recompute(1)
        await db_session.commit()

        rows = (await db_session.execute(select(RankingEntry))).scalars().all()
        assert {r.competition_id for r in rows} == {1}

    @pytest.mark.asyncio
    async def test_recompute_is_idempotent(self, db_session, players):
        alice, bob = players
        await add_result(db_session, 1, alice.id, bob.id, 2, 1)
        await add_result(db_session, 1, alice.id, bob.id, 1, 1)
        calculator = RankingCalculator(db_session)

        await calculator.recompute(1)
        await db_session.commit()
        first = {
            e.player_id: (e.points, e.matches_played, e.wins, e.losses, e.updated_at)
            for e in (await db_session.execute(select(RankingEntry))).scalars().all()
        }

        await calculator.recompute(1)
        await db_session.commit()
        second = {
            e.player_id: (e.points, e.matches_played, e.wins, e.losses, e.updated_at)
            for e in (await db_session.execute(select(RankingEntry))).scalars().all()
        }

        assert first == second
        count = (await db_session.execute(select(func.count()).select_from(RankingEntry))).scalar_one()
        assert count == 2

    @pytest.mark.asyncio
    async def test_recompute_updates_existing_rows(self, db_session, players):
        alice, bob = players
        await add_result(db_session, 1, alice.id, bob.id, 2, 1)
        calculator = RankingCalculator(db_session)
        await calculator.recompute(1)
        await db_session.commit()

        await add_result(db_session, 1, alice.id, bob.id, 0, 4)
        await calculator.recompute(1)
        await db_session.commit()

        rows = {e.player_id: e for e in (await db_session.execute(select(RankingEntry))).scalars().all()}
        assert len(rows) == 2
        assert rows[alice.id].points == 3 and rows[alice.id].losses == 1
        assert rows[bob.id].points == 3 and rows[bob.id].wins == 1

    @pytest.mark.asyncio
    async def test_no_validated_results(self, db_session):
        assert await RankingCalculator(db_session).recompute(99) == []


# =============================================================================
# Ranking order
# =============================================================================

class TestGetRanking:

    @pytest.mark.asyncio
    async def test_ordered_by_points_then_wins(self, db_session):
        a = await make_user(db_session, "a")
        b = await make_user(db_session, "b")
        c = await make_user(db_session, "c")
        d = await make_user(db_session, "d")
        # a: 1 win, 1 loss = 3 pts; b: 3 draws = 3 pts, 0 wins; c: 2 wins = 6 pts
        await add_result(db_session, 5, a.id, d.id, 1, 0)
        await add_result(db_session, 5, c.id, a.id, 2, 0)
        await add_result(db_session, 5, b.id, d.id, 0, 0)
        await add_result(db_session, 5, b.id, d.id, 1, 1)
        await add_result(db_session, 5, b.id, d.id, 2, 2)
        await add_result(db_session, 5, c.id, d.id, 3, 0)

        calculator = RankingCalculator(db_session)
        await calculator.recompute(5)
        await db_session.commit()

        ranking = await calculator.get_ranking(5)
        usernames = [username for _, username in ranking]

        assert usernames[0] == "c"
        # a and b both have 3 points, a has more wins
        assert usernames.index("a") < usernames.index("b")
        points = [entry.points for entry, _ in ranking]
        assert points == sorted(points, reverse=True)

    @pytest.mark.asyncio
    async def test_limit(self, db_session, players):
        alice, bob = players
        await add_result(db_session, 1, alice.id, bob.id, 1, 0)
        calculator = RankingCalculator(db_session)
        await calculator.recompute(1)
        await db_session.commit()

        assert len(await calculator.get_ranking(1, limit=1)) == 1
        assert len(await calculator.get_ranking(1, limit=0)) == 2

    @pytest.mark.asyncio
    async def test_unknown_player_has_no_username(self, db_session):
        await add_result(db_session, 1, 501, 502, 1, 0)
        calculator = RankingCalculator(db_session)
        await calculator.recompute(1)
        await db_session.commit()

        ranking = await calculator.get_ranking(1)
        assert [username for _, username in ranking] == [None, None]
