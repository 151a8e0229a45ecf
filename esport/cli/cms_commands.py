"""
CMS CLI commands: sync

Meant for cron, e.g. hourly:
    0 * * * * cd /srv/esport && python -m esport.cli cms sync
"""
import logging

from esport.config.feature_flags import feature_flags
from esport.services.cms_sync import CmsSyncClient, SyncError

logger = logging.getLogger(__name__)


class CmsCommand:
    """CMS CLI command handler."""

    def __init__(self, settings, dry_run: bool = False):
        self.settings = settings
        self.dry_run = dry_run

    def execute(self, args) -> int:
        if args.cms_action == "sync":
            return self._sync()
        print("Error: Unknown cms action")
        return 1

    def _sync(self) -> int:
        print("=== CMS Sync ===")
        if not feature_flags.FEATURE_CMS_SYNC:
            print("CMS sync is disabled (set FEATURE_CMS_SYNC=true)")
            return 1

        try:
            client = CmsSyncClient(self.settings)
            if self.dry_run:
                competitions = client.fetch_competitions()
                print(f"[DRY RUN] Would mirror {len(competitions)} competitions to {client.cms_url}")
                return 0
            summary = client.sync()
        except SyncError as e:
            logger.error(f"CMS sync failed: {e}")
            print(f"Error: {e}")
            return 1

        for kind, counts in summary.items():
            print(f"  {kind}: {counts['created']} created, {counts['updated']} updated, {counts['failed']} failed")
        failed = sum(counts["failed"] for counts in summary.values())
        return 0 if failed == 0 else 2
