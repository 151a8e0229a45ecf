"""
CMS sync tests

The public API and WordPress are both replaced by a mocked requests
session routed on the URL.
"""
from unittest.mock import MagicMock

import pytest
import requests

from esport.services.cms_sync import CmsSyncClient, SyncError, competition_post, result_post

COMPETITION = {
    "id": 7, "name": "Spring Cup", "game": "Rocket League", "description": "Finals",
    "start_date": "2026-03-01T18:00:00", "end_date": "2026-03-03T18:00:00",
    "registration_fee": 0.0, "status": "open",
}
RESULT = {
    "id": 11, "competition_id": 7, "player1_id": 1, "player2_id": 2,
    "player1_score": 3, "player2_score": 1, "match_date": "2026-03-01T19:00:00",
    "status": "validated",
}


def _response(payload=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} error")
    return response


def _session(existing_slugs=(), failing_slugs=(), source_down=False, competitions=(COMPETITION,)):
    """Mocked session: GET answers the source API and the slug lookups, POST writes posts."""
    session = MagicMock()

    def get(url, params=None, headers=None, timeout=None):
        if url.startswith("http://api.test/api"):
            if source_down:
                raise requests.exceptions.ConnectionError("connection refused")
            if url.endswith("/competitions"):
                return _response({"competitions": list(competitions), "total": len(competitions)})
            return _response({"results": [RESULT]})
        slug = params["slug"]
        return _response([{"id": 500, "slug": slug}] if slug in existing_slugs else [])

    def post(url, json=None, headers=None, timeout=None):
        if json["slug"] in failing_slugs:
            return _response({"code": "rest_error"}, status_code=500)
        return _response({"id": 501})

    session.get.side_effect = get
    session.post.side_effect = post
    return session


class TestPostBodies:

    def test_competition_post(self):
        body = competition_post(COMPETITION)

        assert body["slug"] == "competition-7"
        assert body["title"] == "Spring Cup"
        assert body["meta"]["esport_game"] == "Rocket League"

    def test_result_post(self):
        body = result_post(RESULT)

        assert body["slug"] == "result-11"
        assert body["meta"]["esport_player1_score"] == 3
        assert body["meta"]["esport_status"] == "validated"

    def test_result_post_uses_usernames(self):
        body = result_post(dict(RESULT, player1_username="alice", player2_username="bob"))
        assert body["title"] == "Competition 7: alice 3 - 1 bob"


class TestSync:

    def test_creates_missing_posts(self, settings):
        session = _session()

        summary = CmsSyncClient(settings, session=session).sync()

        assert summary == {
            "competitions": {"created": 1, "updated": 0, "failed": 0},
            "results": {"created": 1, "updated": 0, "failed": 0},
        }
        urls = [c.args[0] for c in session.post.call_args_list]
        assert urls == [
            "http://cms.test/wp-json/wp/v2/esport_competition",
            "http://cms.test/wp-json/wp/v2/esport_result",
        ]
        assert session.post.call_args.kwargs["headers"]["Authorization"] == "Bearer cms-key"

    def test_updates_existing_posts(self, settings):
        session = _session(existing_slugs={"competition-7"})

        summary = CmsSyncClient(settings, session=session).sync()

        assert summary["competitions"] == {"created": 0, "updated": 1, "failed": 0}
        assert session.post.call_args_list[0].args[0] == "http://cms.test/wp-json/wp/v2/esport_competition/500"

    def test_failed_upsert_is_counted(self, settings):
        session = _session(failing_slugs={"result-11"})

        summary = CmsSyncClient(settings, session=session).sync()

        assert summary["competitions"]["created"] == 1
        assert summary["results"] == {"created": 0, "updated": 0, "failed": 1}

    def test_drafts_are_not_published(self, settings):
        draft = dict(COMPETITION, id=8, status="draft")
        session = _session(competitions=(COMPETITION, draft))

        summary = CmsSyncClient(settings, session=session).sync()

        assert summary["competitions"]["created"] == 1
        slugs = [c.kwargs["json"]["slug"] for c in session.post.call_args_list]
        assert "competition-8" not in slugs

    def test_source_failure(self, settings):
        with pytest.raises(SyncError):
            CmsSyncClient(settings, session=_session(source_down=True)).sync()

    def test_requires_cms_configuration(self, settings):
        with pytest.raises(SyncError):
            CmsSyncClient(settings.model_copy(update={"cms_api_key": None}))
