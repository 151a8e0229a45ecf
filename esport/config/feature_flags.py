"""
esport/config/feature_flags.py
On/off switches for optional platform surfaces, read from FEATURE_* variables
"""
from esport.config.settings import get_bool_env


class FeatureFlags:
    """
    Flags are class attributes evaluated at import time; restart the
    process to pick up a changed environment.
    """

    # Newsletter sending (subscribe/unsubscribe are always on)
    FEATURE_NEWSLETTER_SEND: bool = get_bool_env('FEATURE_NEWSLETTER_SEND', True)

    # Paid registrations through the payment webhook
    FEATURE_PAYMENTS: bool = get_bool_env('FEATURE_PAYMENTS', True)

    # Mirror competitions/results into the CMS
    FEATURE_CMS_SYNC: bool = get_bool_env('FEATURE_CMS_SYNC', False)

    @classmethod
    def is_enabled(cls, flag_name: str) -> bool:
        """False for unknown names."""
        return getattr(cls, flag_name, False)

    @classmethod
    def get_all_flags(cls) -> dict:
        """Every FEATURE_* flag with its current value."""
        return {
            key: value
            for key, value in vars(cls).items()
            if key.startswith('FEATURE_') and isinstance(value, bool)
        }


feature_flags = FeatureFlags()
