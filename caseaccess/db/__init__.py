"""
Database Package - SQLAlchemy
=============================

Persistence layer for the case access-control core.
"""

from .models import (
    Base,
    User, Case, CaseAccess, CaseAccessRequest, RevokedToken,
    UserRole, CaseStatus, CaseCategory, RequestStatus,
)
from .session import get_db, get_db_session, init_db, get_engine, reset_engine

__all__ = [
    # Base
    "Base",
    # Models
    "User", "Case", "CaseAccess", "CaseAccessRequest", "RevokedToken",
    # Enums
    "UserRole", "CaseStatus", "CaseCategory", "RequestStatus",
    # Session
    "get_db", "get_db_session", "init_db", "get_engine", "reset_engine",
]
