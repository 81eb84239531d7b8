"""Runtime configuration for the analytics engine."""

from config.settings import AnalyticsSettings, get_settings  # noqa: F401
