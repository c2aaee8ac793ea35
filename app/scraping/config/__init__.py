"""
Config helpers for menu scraping.
"""

from app.scraping.config.loader import get_menu_scraping_settings, load_source_descriptors
from app.scraping.config.models import MenuScrapingSettings, ResilienceConfig, SourceDescriptor

__all__ = [
    "MenuScrapingSettings",
    "ResilienceConfig",
    "SourceDescriptor",
    "get_menu_scraping_settings",
    "load_source_descriptors",
]
