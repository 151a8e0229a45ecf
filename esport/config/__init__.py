"""
esport/config
Settings, feature flags and logging setup
"""
from esport.config.settings import Settings, get_settings
from esport.config.feature_flags import feature_flags
from esport.config.log_setup import configure_logging

__all__ = ["Settings", "get_settings", "feature_flags", "configure_logging"]
