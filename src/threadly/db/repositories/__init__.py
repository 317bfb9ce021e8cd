"""Repository layer for database operations."""

from threadly.db.repositories.audit_repo import TokenAuditRepository
from threadly.db.repositories.scheduled_message_repo import ScheduledMessageStore
from threadly.db.repositories.token_store import TokenStore


__all__ = ["ScheduledMessageStore", "TokenAuditRepository", "TokenStore"]
