"""Database module for Labmate.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from labmate.db.engine import create_db_engine, get_engine
from labmate.db.models import Base, Chat, Message, MessageRole, Profile, User
from labmate.db.session import get_db, transaction

__all__ = [
    "create_db_engine",
    "get_engine",
    "get_db",
    "transaction",
    "Base",
    "MessageRole",
    "User",
    "Profile",
    "Chat",
    "Message",
]
