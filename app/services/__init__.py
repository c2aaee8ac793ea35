"""
app/services package marker.
"""

from app.services.menu_collection_service import (
    CollectionReport,
    MenuCollectionService,
    SourceMenu,
    WeeklyMenus,
    get_menu_collection_service,
)

__all__ = [
    "CollectionReport",
    "MenuCollectionService",
    "SourceMenu",
    "WeeklyMenus",
    "get_menu_collection_service",
]
