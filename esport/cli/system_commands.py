"""
System CLI commands: config
"""
from esport.config.feature_flags import feature_flags


class SystemCommand:
    """System CLI command handler."""

    def __init__(self, settings, dry_run: bool = False):
        self.settings = settings
        self.dry_run = dry_run

    def execute(self, args) -> int:
        if args.system_action == "config":
            return self._config(args)
        print("Error: Unknown system action")
        return 1

    def _config(self, args) -> int:
        print("=== Configuration ===")
        print(f"  environment:     {self.settings.environment}")
        print(f"  database:        {self.settings.db_connection.split('://', 1)[0]}")
        print(f"  mail transport:  {self.settings.mail_transport.split('://', 1)[0]}")
        print(f"  payment gateway: {self.settings.payment_gateway} ({self.settings.payment_currency})")
        print(f"  cms:             {self.settings.cms_api_url or '-'}")
        for name, enabled in sorted(feature_flags.get_all_flags().items()):
            print(f"  {name}: {'on' if enabled else 'off'}")

        if not args.check:
            return 0

        problems = self.settings.check()
        if not problems:
            print("✓ Configuration OK")
            return 0
        for problem in problems:
            print(f"  ✗ {problem}")
        return 1
