"""
API Routes for StockTrail

Route modules:
- auth: login, first-login activation, current user
- inventory: items, reference dropdowns, thresholds
- dashboard: counters, low stock, recent activity
- borrowing: borrow requests and their transitions
- activity: history and notifications
- users: account management and system settings
"""

from stocktrail.api.routes.auth import router as auth_router
from stocktrail.api.routes.inventory import router as inventory_router
from stocktrail.api.routes.dashboard import router as dashboard_router
from stocktrail.api.routes.borrowing import router as borrowing_router
from stocktrail.api.routes.activity import history_router, notifications_router
from stocktrail.api.routes.users import users_router, settings_router

__all__ = [
    "auth_router",
    "inventory_router",
    "dashboard_router",
    "borrowing_router",
    "history_router",
    "notifications_router",
    "users_router",
    "settings_router",
]
