"""
Newsletter CLI commands: send
"""
import asyncio
import logging
from pathlib import Path

from esport.database import build_engine, build_sessionmaker
from esport.services.mailer import Mailer
from esport.services.newsletter_service import NewsletterService

logger = logging.getLogger(__name__)


class NewsletterCommand:
    """Newsletter CLI command handler."""

    def __init__(self, settings, dry_run: bool = False):
        self.settings = settings
        self.dry_run = dry_run

    def execute(self, args) -> int:
        if args.newsletter_action == "send":
            return self._send(args)
        print("Error: Unknown newsletter action")
        return 1

    def _send(self, args) -> int:
        print("=== Newsletter Send ===")
        content = args.content
        if args.content_file:
            path = Path(args.content_file)
            if not path.exists():
                print(f"Error: File not found: {path}")
                return 1
            content = path.read_text(encoding="utf-8")

        summary = asyncio.run(self._async_send(args.subject, content, args.preference))
        if self.dry_run:
            print(f"[DRY RUN] Would send to {summary['total']} subscribers")
        else:
            print(f"  {summary['sent']} sent, {summary['failed']} failed, {summary['total']} total")
        return 0 if summary["failed"] == 0 else 2

    async def _async_send(self, subject: str, content: str, preferences: list) -> dict:
        engine = build_engine(self.settings.db_connection)
        session_factory = build_sessionmaker(engine)
        try:
            async with session_factory() as db:
                service = NewsletterService(db, Mailer(self.settings))
                if self.dry_run:
                    recipients = await service.recipients(preferences)
                    return {"total": len(recipients), "sent": 0, "failed": 0}
                return await service.send(subject, content, preferences)
        finally:
            await engine.dispose()
