"""
StockTrail - FastAPI Backend.

HTTP JSON API for the inventory and borrowing tracker.
"""

from .main import app, create_app, main
from .dependencies import (
    Settings,
    get_settings,
    get_db,
    init_database,
    create_tables,
)
from .schemas import (
    ActionResponse,
    ErrorResponse,
    HealthResponse,
)

__all__ = [
    # Application
    "app",
    "create_app",
    "main",
    # Dependencies
    "Settings",
    "get_settings",
    "get_db",
    "init_database",
    "create_tables",
    # Schemas
    "ActionResponse",
    "ErrorResponse",
    "HealthResponse",
]
