"""
esport/services/cms_sync.py
Mirror competitions and results into WordPress

Reads the public API (GET /competitions, GET /results?competition_id=...)
and upserts posts of the esport_competition and esport_result types through
the WordPress REST API. Posts are keyed by slug: competition-<id>,
result-<id>.

Intended to run from cron through `python -m esport.cli cms sync`.
"""
import logging
from typing import Dict, List, Optional

import requests

from esport.config.settings import Settings

logger = logging.getLogger(__name__)

COMPETITION_TYPE = "esport_competition"
RESULT_TYPE = "esport_result"
PAGE_SIZE = 100


class SyncError(RuntimeError):
    """The source API could not be read, or the CMS is not configured"""


def competition_post(competition: Dict) -> Dict:
    """WordPress post body for a competition."""
    return {
        "slug": f"competition-{competition['id']}",
        "title": competition.get("name", ""),
        "content": competition.get("description") or "",
        "status": "publish",
        "meta": {
            "esport_competition_id": competition["id"],
            "esport_game": competition.get("game"),
            "esport_start_date": competition.get("start_date"),
            "esport_end_date": competition.get("end_date"),
            "esport_registration_fee": competition.get("registration_fee"),
            "esport_status": competition.get("status"),
        },
    }


def result_post(result: Dict) -> Dict:
    """WordPress post body for a match result."""
    player1 = result.get("player1_username") or result["player1_id"]
    player2 = result.get("player2_username") or result["player2_id"]
    return {
        "slug": f"result-{result['id']}",
        "title": (f"Competition {result['competition_id']}: "
                  f"{player1} {result['player1_score']} - "
                  f"{result['player2_score']} {player2}"),
        "status": "publish",
        "meta": {
            "esport_result_id": result["id"],
            "esport_competition_id": result["competition_id"],
            "esport_player1_id": result["player1_id"],
            "esport_player2_id": result["player2_id"],
            "esport_player1_score": result["player1_score"],
            "esport_player2_score": result["player2_score"],
            "esport_match_date": result.get("match_date"),
            "esport_status": result.get("status"),
        },
    }


def _empty_counts() -> Dict[str, int]:
    return {"created": 0, "updated": 0, "failed": 0}


class CmsSyncClient:

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        if not settings.cms_api_url or not settings.cms_api_key:
            raise SyncError("CMS_API_URL and CMS_API_KEY must be set for CMS sync")

        self.settings = settings
        self.source_url = settings.public_api_url.rstrip("/")
        self.cms_url = settings.cms_api_url.rstrip("/")
        self.timeout = settings.cms_timeout_seconds
        self.session = session or requests.Session()
        self.cms_headers = {
            "Authorization": f"Bearer {settings.cms_api_key}",
            "Content-Type": "application/json",
        }

    # ================= SOURCE =================

    def _get_source(self, path: str, params: Optional[Dict] = None) -> Dict:
        try:
            response = self.session.get(f"{self.source_url}{path}", params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Source API request failed for {path}: {str(e)}")
            raise SyncError(f"Failed to read {path} from the public API: {str(e)}") from e
        except ValueError as e:
            raise SyncError(f"Public API returned invalid JSON for {path}") from e

    def fetch_competitions(self) -> List[Dict]:
        competitions: List[Dict] = []
        offset = 0
        while True:
            data = self._get_source("/competitions", {"limit": PAGE_SIZE, "offset": offset})
            page = data.get("competitions", [])
            competitions.extend(page)
            offset += len(page)
            if not page or offset >= data.get("total", 0):
                return competitions

    def fetch_results(self, competition_id: int) -> List[Dict]:
        data = self._get_source("/results", {"competition_id": competition_id})
        return data.get("results", [])

    # ================= CMS =================

    def _find_post(self, post_type: str, slug: str) -> Optional[Dict]:
        response = self.session.get(
            f"{self.cms_url}/wp/v2/{post_type}",
            params={"slug": slug, "status": "any"},
            headers=self.cms_headers,
            timeout=self.timeout
        )
        response.raise_for_status()
        posts = response.json()
        return posts[0] if posts else None

    def upsert_post(self, post_type: str, body: Dict) -> str:
        """Create or update a post by slug. Returns 'created' or 'updated'."""
        existing = self._find_post(post_type, body["slug"])
        if existing:
            url = f"{self.cms_url}/wp/v2/{post_type}/{existing['id']}"
            outcome = "updated"
        else:
            url = f"{self.cms_url}/wp/v2/{post_type}"
            outcome = "created"

        response = self.session.post(url, json=body, headers=self.cms_headers, timeout=self.timeout)
        response.raise_for_status()
        return outcome

    def _push(self, post_type: str, body: Dict, counts: Dict[str, int]) -> None:
        try:
            counts[self.upsert_post(post_type, body)] += 1
        except requests.exceptions.RequestException as e:
            counts["failed"] += 1
            logger.warning(f"CMS upsert of {post_type} '{body['slug']}' failed: {str(e)}")

    def sync(self) -> Dict[str, Dict[str, int]]:
        """
        Mirror every published competition and its results. Drafts are skipped.

        Returns:
            {"competitions": {created, updated, failed},
             "results": {created, updated, failed}}

        Raises:
            SyncError: the public API could not be read
        """
        logger.info(f"CMS sync started: {self.source_url} -> {self.cms_url}")
        summary = {"competitions": _empty_counts(), "results": _empty_counts()}

        for competition in self.fetch_competitions():
            if competition.get("status") == "draft":
                logger.debug(f"Skipping draft competition {competition['id']}")
                continue
            self._push(COMPETITION_TYPE, competition_post(competition), summary["competitions"])
            for result in self.fetch_results(competition["id"]):
                self._push(RESULT_TYPE, result_post(result), summary["results"])

        logger.info(f"CMS sync finished: {summary}")
        return summary
