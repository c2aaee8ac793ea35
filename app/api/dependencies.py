"""
app/api/dependencies.py

Shared FastAPI dependencies.
"""

from __future__ import annotations

from fastapi import HTTPException, status

from app.scraping.errors import ConfigurationError
from app.services.menu_collection_service import (
    MenuCollectionService,
    get_menu_collection_service,
)


def get_menu_service() -> MenuCollectionService:
    """
    Return the shared collection service, or 503 when sources are misconfigured.
    """

    try:
        return get_menu_collection_service()
    except (ConfigurationError, FileNotFoundError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Menu sources unavailable: {exc}",
        ) from exc
