"""Database module for MemoryHaze.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from memoryhaze.db.engine import create_db_engine, get_engine
from memoryhaze.db.models import (
    Base,
    Counter,
    Gift,
    GiftStatus,
    Occasion,
    Plan,
    TemplateId,
    User,
)
from memoryhaze.db.session import get_db, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "get_db",
    "transaction",
    # Base
    "Base",
    # Enums
    "GiftStatus",
    "Occasion",
    "Plan",
    "TemplateId",
    # Models
    "User",
    "Counter",
    "Gift",
]
