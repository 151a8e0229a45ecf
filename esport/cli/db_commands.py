"""
Database CLI commands: init
"""
import asyncio
import logging

from esport.database import build_engine, init_db

logger = logging.getLogger(__name__)


class DbCommand:
    """Database CLI command handler."""

    def __init__(self, settings, dry_run: bool = False):
        self.settings = settings
        self.dry_run = dry_run

    def execute(self, args) -> int:
        if args.db_action == "init":
            return self._init()
        print("Error: Unknown database action")
        return 1

    def _init(self) -> int:
        print("=== Database Init ===")
        print(f"Backend: {self.settings.db_connection.split('://', 1)[0]}")

        if self.dry_run:
            print("[DRY RUN] Would create all missing tables")
            return 0

        asyncio.run(self._async_init())
        print("✓ Tables created")
        return 0

    async def _async_init(self) -> None:
        engine = build_engine(self.settings.db_connection)
        try:
            await init_db(engine)
        finally:
            await engine.dispose()
