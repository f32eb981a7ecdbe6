"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.sheets import router as sheets_router

__all__ = [
    "sheets_router",
]
