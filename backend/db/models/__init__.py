"""Model module imports for SQLAlchemy metadata registration."""

from __future__ import annotations

import logging

from backend.db.models.auth_user import AuthUser
from backend.db.models.profile import Profile
from backend.db.models.trade import Trade

logger = logging.getLogger(__name__)

__all__ = [
    "AuthUser",
    "Profile",
    "Trade",
]
