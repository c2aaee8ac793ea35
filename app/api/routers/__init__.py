"""
app/api/routers package marker.
"""

from app.api.routers.menus import router as menus_router

__all__ = ["menus_router"]
