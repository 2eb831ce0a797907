"""
Identity & Access for StockTrail.
"""

from stocktrail.identity.service import (
    IdentityService,
    AuthStatus,
    AuthResult,
    UserView,
)

__all__ = [
    "IdentityService",
    "AuthStatus",
    "AuthResult",
    "UserView",
]
