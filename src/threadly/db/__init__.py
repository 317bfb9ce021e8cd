"""Database package for SQL persistence."""

from threadly.db.engine import close_db, get_engine, get_session, init_db
from threadly.db.models import (
    AuditAction,
    MessageStatus,
    ScheduledMessage,
    TokenAuditLog,
    User,
)


__all__ = [
    "AuditAction",
    "MessageStatus",
    "ScheduledMessage",
    "TokenAuditLog",
    "User",
    "close_db",
    "get_engine",
    "get_session",
    "init_db",
]
