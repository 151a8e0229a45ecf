"""
Result store tests

Coverage:
- Submission validation and defaults
- Two-sided validation and the pending -> validated transition
- Ranking recomputation triggered exactly once
- Non-participants and contested results
- Listing with status filters
"""
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from esport.errors import ValidationError, NotFoundError, NotAuthorizedError, ErrorCode
from esport.orm import ResultStatus
from esport.services.ranking_calculator import RankingCalculator
from esport.services.result_store import ResultStore
from esport.tests.conftest import make_user


def submission(p1, p2, s1=3, s2=1, competition_id=7, **extra):
    data = {
        "competition_id": competition_id,
        "player1_id": p1,
        "player2_id": p2,
        "player1_score": s1,
        "player2_score": s2,
    }
    data.update(extra)
    return data


# =============================================================================
# Submit
# =============================================================================

class TestSubmit:

    @pytest.mark.asyncio
    async def test_submit_creates_pending_result(self, db_session, players):
        alice, bob = players
        store = ResultStore(db_session)

        result_id = await store.submit(submission(alice.id, bob.id), submitted_by=alice.id)
        result = await store.get(result_id)

        assert result.status == ResultStatus.pending
        assert result.player1_validated is False
        assert result.player2_validated is False
        assert result.match_date is not None
        assert result.submitted_by == alice.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["competition_id", "player1_id", "player2_id",
                                         "player1_score", "player2_score"])
    async def test_missing_field_is_rejected(self, db_session, missing):
        data = submission(1, 2)
        del data[missing]

        with pytest.raises(ValidationError) as exc_info:
            await ResultStore(db_session).submit(data)
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_negative_score_is_rejected(self, db_session):
        with pytest.raises(ValidationError):
            await ResultStore(db_session).submit(submission(1, 2, s1=-1))

    @pytest.mark.asyncio
    async def test_wrong_type_is_rejected(self, db_session):
        with pytest.raises(ValidationError):
            await ResultStore(db_session).submit(submission(1, 2, s1="three"))

    @pytest.mark.asyncio
    async def test_same_player_twice_is_rejected(self, db_session):
        with pytest.raises(ValidationError):
            await ResultStore(db_session).submit(submission(1, 1))

    @pytest.mark.asyncio
    async def test_explicit_match_date_is_kept(self, db_session, players):
        alice, bob = players
        when = datetime(2026, 2, 14, 20, 30)
        store = ResultStore(db_session)

        result_id = await store.submit(submission(alice.id, bob.id, match_date=when))

        assert (await store.get(result_id)).match_date == when


# =============================================================================
# Validate
# =============================================================================

class TestValidate:

    @pytest.mark.asyncio
    async def test_full_validation_flow_updates_ranking(self, db_session, players):
        alice, bob = players
        assert (alice.id, bob.id) == (1, 2)
        store = ResultStore(db_session)

        result_id = await store.submit(submission(1, 2, 3, 1, competition_id=7))

        assert await store.validate(result_id, 1) is True
        result = await store.get(result_id)
        assert result.status == ResultStatus.pending
        assert result.player1_validated is True
        assert result.player2_validated is False

        assert await store.validate(result_id, 2) is True
        result = await store.get(result_id)
        assert result.status == ResultStatus.validated

        ranking = await RankingCalculator(db_session).get_ranking(7)
        assert [(e.player_id, e.points, e.wins, e.losses) for e, _ in ranking] == [
            (1, 3, 1, 0),
            (2, 0, 0, 1),
        ]
        assert [username for _, username in ranking] == ["alice", "bob"]

    @pytest.mark.asyncio
    async def test_tie_gives_one_point_each(self, db_session, players):
        alice, bob = players
        store = ResultStore(db_session)
        result_id = await store.submit(submission(alice.id, bob.id, 2, 2))

        await store.validate(result_id, bob.id)
        await store.validate(result_id, alice.id)

        ranking = await RankingCalculator(db_session).get_ranking(7)
        assert sorted((e.player_id, e.points) for e, _ in ranking) == [(alice.id, 1), (bob.id, 1)]

    @pytest.mark.asyncio
    async def test_non_participant_is_rejected_without_mutation(self, db_session, players):
        alice, bob = players
        carol = await make_user(db_session, "carol")
        store = ResultStore(db_session)
        result_id = await store.submit(submission(alice.id, bob.id))
        before = (await store.get(result_id)).to_dict()

        with pytest.raises(NotAuthorizedError) as exc_info:
            await store.validate(result_id, carol.id)

        assert exc_info.value.code == ErrorCode.NOT_PARTICIPANT
        assert (await store.get(result_id)).to_dict() == before

    @pytest.mark.asyncio
    async def test_unknown_result(self, db_session):
        with pytest.raises(NotFoundError):
            await ResultStore(db_session).validate(12345, 1)

    @pytest.mark.asyncio
    async def test_recompute_runs_once(self, db_session, players):
        alice, bob = players
        rankings = RankingCalculator(db_session)
        rankings.recompute = AsyncMock(return_value=[])
        store = ResultStore(db_session, rankings=rankings)
        result_id = await store.submit(submission(alice.id, bob.id))

        await store.validate(result_id, alice.id)
        rankings.recompute.assert_not_called()

        await store.validate(result_id, bob.id)
        await store.validate(result_id, bob.id)
        await store.validate(result_id, alice.id)

        rankings.recompute.assert_called_once_with(7)
        assert (await store.get(result_id)).status == ResultStatus.validated

    @pytest.mark.asyncio
    async def test_repeat_validation_is_harmless(self, db_session, players):
        alice, bob = players
        store = ResultStore(db_session)
        result_id = await store.submit(submission(alice.id, bob.id))

        assert await store.validate(result_id, alice.id) is True
        assert await store.validate(result_id, alice.id) is True

        result = await store.get(result_id)
        assert result.status == ResultStatus.pending
        assert result.player2_validated is False

    @pytest.mark.asyncio
    async def test_contested_result_cannot_be_validated(self, db_session, players):
        alice, bob = players
        store = ResultStore(db_session)
        result_id = await store.submit(submission(alice.id, bob.id))

        assert await store.contest(result_id, bob.id) is True
        assert await store.validate(result_id, alice.id) is False

        result = await store.get(result_id)
        assert result.status == ResultStatus.contested
        assert result.player1_validated is False


# =============================================================================
# Contest
# =============================================================================

class TestContest:

    @pytest.mark.asyncio
    async def test_validated_result_cannot_be_contested(self, db_session, players):
        alice, bob = players
        store = ResultStore(db_session)
        result_id = await store.submit(submission(alice.id, bob.id))
        await store.validate(result_id, alice.id)
        await store.validate(result_id, bob.id)

        assert await store.contest(result_id, bob.id) is False
        assert (await store.get(result_id)).status == ResultStatus.validated

    @pytest.mark.asyncio
    async def test_non_participant_cannot_contest(self, db_session, players):
        alice, bob = players
        store = ResultStore(db_session)
        result_id = await store.submit(submission(alice.id, bob.id))

        with pytest.raises(NotAuthorizedError):
            await store.contest(result_id, 999)


# =============================================================================
# List
# =============================================================================

class TestList:

    @pytest.mark.asyncio
    async def test_list_newest_first_with_filter(self, db_session, players):
        alice, bob = players
        store = ResultStore(db_session)
        old_id = await store.submit(submission(alice.id, bob.id, match_date=datetime(2026, 1, 1)))
        new_id = await store.submit(submission(alice.id, bob.id, match_date=datetime(2026, 1, 5)))
        await store.submit(submission(alice.id, bob.id, competition_id=8))
        await store.validate(old_id, alice.id)
        await store.validate(old_id, bob.id)

        assert [r.id for r in await store.list(7)] == [new_id, old_id]
        assert [r.id for r in await store.list(7, "validated")] == [old_id]
        assert [r.id for r in await store.list(7, "pending")] == [new_id]
        assert await store.list(7, "contested") == []

    @pytest.mark.asyncio
    async def test_list_with_usernames(self, db_session, players):
        alice, bob = players
        store = ResultStore(db_session)
        known = await store.submit(submission(alice.id, bob.id, match_date=datetime(2026, 1, 5)))
        ghost = await store.submit(submission(alice.id, 404, match_date=datetime(2026, 1, 1)))

        rows = await store.list_with_usernames(7)

        assert [(r.id, name1, name2) for r, name1, name2 in rows] == [
            (known, "alice", "bob"),
            (ghost, "alice", None),
        ]

    @pytest.mark.asyncio
    async def test_unknown_status_filter(self, db_session):
        with pytest.raises(ValidationError):
            await ResultStore(db_session).list(7, "finished")
