"""Persistence of per-user Slack credentials."""

from datetime import UTC, datetime

import structlog
from sqlmodel import select

from threadly.db.engine import get_session
from threadly.db.models import User
from threadly.security.token_cipher import TokenCipher
from threadly.tokens.models import Credential


logger = structlog.get_logger(__name__)


class TokenStore:
    """Repository for the Slack credential embedded in the users table.

    Token values are encrypted with ``cipher`` on write and decrypted on
    read; nothing outside this class sees ciphertext.
    """

    def __init__(self, cipher: TokenCipher) -> None:
        self._cipher = cipher

    async def save(
        self,
        user_id: str,
        credential: Credential,
        *,
        clear_refresh_token: bool = False,
    ) -> None:
        """Upsert the credential for ``user_id``.

        A credential without a refresh token keeps any refresh token already
        stored unless ``clear_refresh_token`` is set.

        Raises:
            ValueError: If the access token is empty
            StorageError: If the write fails
        """
        if not credential.access_token:
            raise ValueError("access_token must not be empty")

        now = datetime.now(UTC)
        async with get_session() as session:
            user = await session.get(User, user_id)
            if user is None:
                user = User(id=user_id, created_at=now)

            user.slack_access_token = self._cipher.encrypt(credential.access_token)
            if credential.refresh_token:
                user.slack_refresh_token = self._cipher.encrypt(
                    credential.refresh_token
                )
            elif clear_refresh_token:
                user.slack_refresh_token = None
            user.slack_token_expires_at = credential.expires_at
            user.slack_token_created_at = (
                credential.created_at or user.slack_token_created_at or now
            )
            user.slack_last_refreshed = credential.last_refreshed
            if credential.last_used is not None:
                user.slack_last_used = credential.last_used

            # Refreshes keep workspace metadata unless a new grant replaces it
            for column, value in (
                ("slack_workspace_id", credential.workspace_id),
                ("slack_workspace_name", credential.workspace_name),
                ("slack_scope", credential.scope),
                ("slack_bot_user_id", credential.bot_user_id),
                ("slack_authed_user_id", credential.authed_user_id),
            ):
                if value is not None:
                    setattr(user, column, value)

            user.updated_at = now
            session.add(user)

    async def load(self, user_id: str) -> Credential | None:
        """Return the decrypted credential, or None if the user has none."""
        async with get_session() as session:
            user = await session.get(User, user_id)
            if user is None or not user.slack_access_token:
                return None
            return self._to_credential(user)

    async def rekey(self, user_id: str) -> bool:
        """Re-wrap the stored tokens of ``user_id`` under the primary key.

        Returns True if the user had a credential to re-wrap.

        Raises:
            CredentialDecryptionError: If no configured key can unwrap them
        """
        async with get_session() as session:
            user = await session.get(User, user_id)
            if user is None or not user.slack_access_token:
                return False
            user.slack_access_token = self._cipher.rotate(user.slack_access_token)
            if user.slack_refresh_token:
                user.slack_refresh_token = self._cipher.rotate(user.slack_refresh_token)
            session.add(user)
            return True

    async def list_user_ids(self) -> list[str]:
        """Ids of users holding a credential, without decrypting anything."""
        async with get_session() as session:
            result = await session.execute(
                select(User.id).where(User.slack_access_token.is_not(None))  # type: ignore[union-attr]
            )
            return list(result.scalars().all())

    async def clear(self, user_id: str) -> bool:
        """Remove the credential but keep the user row.

        Returns True if a credential was cleared.
        """
        async with get_session() as session:
            user = await session.get(User, user_id)
            if user is None or not user.slack_access_token:
                return False
            user.slack_access_token = None
            user.slack_refresh_token = None
            user.slack_token_expires_at = None
            user.slack_token_created_at = None
            user.slack_last_refreshed = None
            user.slack_last_used = None
            user.slack_scope = None
            user.slack_bot_user_id = None
            user.slack_authed_user_id = None
            user.slack_workspace_id = None
            user.slack_workspace_name = None
            user.updated_at = datetime.now(UTC)
            session.add(user)
            return True

    async def touch_last_used(self, user_id: str) -> None:
        async with get_session() as session:
            user = await session.get(User, user_id)
            if user is not None and user.slack_access_token:
                user.slack_last_used = datetime.now(UTC)
                session.add(user)

    def _to_credential(self, user: User) -> Credential:
        assert user.slack_access_token is not None
        return Credential(
            user_id=user.id,
            access_token=self._cipher.decrypt(user.slack_access_token),
            refresh_token=(
                self._cipher.decrypt(user.slack_refresh_token)
                if user.slack_refresh_token
                else None
            ),
            # Missing expiry is treated as already expired
            expires_at=user.slack_token_expires_at or datetime.fromtimestamp(0, UTC),
            workspace_id=user.slack_workspace_id,
            workspace_name=user.slack_workspace_name,
            scope=user.slack_scope,
            bot_user_id=user.slack_bot_user_id,
            authed_user_id=user.slack_authed_user_id,
            created_at=user.slack_token_created_at,
            last_refreshed=user.slack_last_refreshed,
            last_used=user.slack_last_used,
        )
