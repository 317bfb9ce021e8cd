"""Token audit log repository."""

import structlog
from sqlmodel import select

from threadly.db.engine import get_session
from threadly.db.models import AuditAction, TokenAuditLog
from threadly.exceptions import StorageError


logger = structlog.get_logger(__name__)


class TokenAuditRepository:
    """Append-only store of credential events."""

    async def record(
        self,
        action: AuditAction,
        user_id: str,
        *,
        workspace_id: str | None = None,
        detail: str | None = None,
    ) -> None:
        """Append an entry. Failures are logged, never raised."""
        try:
            async with get_session() as session:
                session.add(
                    TokenAuditLog(
                        action=action,
                        user_id=user_id,
                        workspace_id=workspace_id,
                        detail=detail,
                    )
                )
        except StorageError as e:
            logger.warning(
                "token_audit_write_failed",
                action=str(action),
                user_id=user_id,
                error=str(e),
            )

    async def list_for_user(self, user_id: str, limit: int = 100) -> list[TokenAuditLog]:
        async with get_session() as session:
            result = await session.execute(
                select(TokenAuditLog)
                .where(TokenAuditLog.user_id == user_id)
                .order_by(TokenAuditLog.timestamp.desc(), TokenAuditLog.id.desc())  # type: ignore[union-attr]
                .limit(limit)
            )
            return list(result.scalars().all())
