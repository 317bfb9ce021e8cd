"""Slack token lifecycle management.

Hands callers an access token that is valid right now, refreshing it
transparently, and keeps every stored credential from lapsing through a
periodic proactive sweep.

Refreshes for one user are single-flight: the first caller starts a task,
later callers await the same task. The task is shielded from caller
cancellation, since Slack rotates the refresh token on use and an
interrupted refresh would lose the new pair.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from structlog import get_logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from threadly.config.scheduler import SchedulerSettings
from threadly.config.slack import SlackSettings
from threadly.db.models import AuditAction
from threadly.db.repositories.audit_repo import TokenAuditRepository
from threadly.db.repositories.token_store import TokenStore
from threadly.exceptions import (
    NoCredentialError,
    NoRefreshTokenError,
    RefreshRejectedError,
    StorageError,
    ThreadlyError,
    TransportError,
)
from threadly.slack.gateway import SlackGateway
from threadly.slack.models import TokenBundle
from threadly.tokens.models import (
    Credential,
    MigrationResult,
    RekeyResult,
    SweepResult,
    TokenStatus,
)


logger = get_logger(__name__)

TOKEN_PREFIX_LENGTH = 4


def format_time_remaining(expires_at: datetime, now: datetime | None = None) -> str:
    """Render the time until expiry as ``"<h>h <m>m"``."""
    now = now or datetime.now(UTC)
    remaining = int((expires_at - now).total_seconds())
    if remaining <= 0:
        return "Expired"
    hours, rest = divmod(remaining, 3600)
    return f"{hours}h {rest // 60}m"


class TokenLifecycleManager:
    """Keeps Slack credentials valid.

    Features:
    - Lazy refresh when a token is within the safety window of expiry
    - At most one in-flight refresh per user
    - Retries transport failures with exponential backoff
    - Migrates legacy non-rotating grants to rotating tokens
    - Proactive sweep of every stored credential
    """

    def __init__(
        self,
        store: TokenStore,
        gateway: SlackGateway,
        audit: TokenAuditRepository | None = None,
        settings: SchedulerSettings | None = None,
        slack_settings: SlackSettings | None = None,
        retry_wait: wait_base | None = None,
    ) -> None:
        """Initialize the lifecycle manager.

        Args:
            store: Credential persistence
            gateway: Slack API access
            audit: Audit log; a default repository is used if omitted
            settings: Windows and retry limits
            slack_settings: Supplies the expiry assumed for legacy grants
            retry_wait: tenacity wait strategy between refresh attempts
        """
        self.store = store
        self.gateway = gateway
        self.audit = audit or TokenAuditRepository()
        self.settings = settings or SchedulerSettings()
        self.slack_settings = slack_settings or gateway.settings
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=30)
        self._inflight: dict[str, asyncio.Task[Any]] = {}

    @property
    def safety_window(self) -> timedelta:
        return timedelta(seconds=self.settings.access_token_safety_window_seconds)

    @property
    def proactive_window(self) -> timedelta:
        return timedelta(hours=self.settings.proactive_refresh_window_hours)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def get_valid_access_token(self, user_id: str) -> str:
        """Return an access token that will not expire within the safety window.

        Raises:
            NoCredentialError: The user has not connected Slack
            NoRefreshTokenError: The token is near expiry, there is no refresh
                token and migration did not produce one
            RefreshRejectedError: Slack refused the refresh token
            StorageError: The Datastore is unavailable
        """
        credential = await self.store.load(user_id)
        if credential is None:
            raise NoCredentialError(user_id)

        if credential.expires_within(self.safety_window):
            logger.info(
                "access_token_near_expiry",
                user_id=user_id,
                expires_at=credential.expires_at.isoformat(),
            )
            credential = await self._single_flight(
                user_id,
                lambda: self._refresh_flight(
                    user_id, min_validity=self.safety_window, allow_migration=True
                ),
            )

        try:
            await self.store.touch_last_used(user_id)
        except StorageError as e:
            logger.warning("token_last_used_update_failed", user_id=user_id, error=str(e))

        return credential.access_token

    async def refresh(self, user_id: str) -> Credential:
        """Refresh the user's tokens now, regardless of expiry.

        Raises:
            NoCredentialError: The user has not connected Slack
            NoRefreshTokenError: No refresh token is stored
            RefreshRejectedError: Slack refused the refresh token
            TransportError: Slack stayed unreachable for every attempt
        """
        return await self._single_flight(
            user_id,
            lambda: self._refresh_flight(user_id, min_validity=None, allow_migration=False),
        )

    async def migrate_legacy_credential(self, user_id: str) -> bool:
        """Exchange a legacy long-lived token for a rotating pair.

        Returns:
            True if the credential is rotating afterwards, False when there
            was nothing to migrate
        """
        credential = await self.store.load(user_id)
        if credential is None or not credential.access_token:
            return False
        if credential.is_rotating:
            return False

        updated = await self._single_flight(
            user_id, lambda: self._migrate_flight(user_id)
        )
        return updated is not None and updated.is_rotating

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        """Migrate legacy credentials and refresh those expiring soon.

        Per-user failures are counted and logged. Only a failure to list
        the credentials is raised.
        """
        now = now or datetime.now(UTC)
        user_ids = await self.store.list_user_ids()
        result = SweepResult(checked=len(user_ids))

        for user_id in user_ids:
            try:
                credential = await self.store.load(user_id)
                if credential is None:
                    result.skipped += 1
                    continue

                if not credential.is_rotating:
                    if await self.migrate_legacy_credential(user_id):
                        result.migrated += 1
                    else:
                        result.skipped += 1
                    continue

                if not credential.expires_within(self.proactive_window, now):
                    result.skipped += 1
                    continue

                await self._single_flight(
                    user_id,
                    lambda uid=user_id: self._refresh_flight(
                        uid, min_validity=self.proactive_window, allow_migration=False
                    ),
                )
                result.refreshed += 1
            except ThreadlyError as e:
                result.failed += 1
                result.errors[user_id] = e.message
                logger.warning(
                    "token_sweep_user_failed",
                    user_id=user_id,
                    error_type=str(e.error_type),
                    error=e.message,
                )
            except Exception as e:
                result.failed += 1
                result.errors[user_id] = str(e)
                logger.exception("token_sweep_user_error", user_id=user_id)

        logger.info(
            "token_sweep_complete",
            checked=result.checked,
            migrated=result.migrated,
            refreshed=result.refreshed,
            failed=result.failed,
            skipped=result.skipped,
        )
        return result

    async def migrate_all(self) -> MigrationResult:
        """Force migration of every legacy credential."""
        result = MigrationResult()
        for user_id in await self.store.list_user_ids():
            try:
                if await self.migrate_legacy_credential(user_id):
                    result.migrated_count += 1
            except ThreadlyError as e:
                result.error_count += 1
                logger.warning("token_migration_failed", user_id=user_id, error=e.message)
            except Exception:
                result.error_count += 1
                logger.exception("token_migration_user_error", user_id=user_id)
        logger.info(
            "token_migration_complete",
            migrated=result.migrated_count,
            errors=result.error_count,
        )
        return result

    async def rekey_all(self) -> RekeyResult:
        """Re-wrap every stored credential under the primary encryption key.

        Run after prepending a new key to THREADLY_TOKEN_ENCRYPTION_KEYS; the
        old key can be dropped once nothing fails.
        """
        result = RekeyResult()
        for user_id in await self.store.list_user_ids():
            try:
                if await self.store.rekey(user_id):
                    result.rekeyed_count += 1
            except ThreadlyError as e:
                result.error_count += 1
                logger.warning("token_rekey_failed", user_id=user_id, error=e.message)
            except Exception:
                result.error_count += 1
                logger.exception("token_rekey_user_error", user_id=user_id)
        logger.info(
            "token_rekey_complete",
            rekeyed=result.rekeyed_count,
            errors=result.error_count,
        )
        return result

    async def token_status(self, now: datetime | None = None) -> list[TokenStatus]:
        """Summaries of every stored credential with the token masked."""
        now = now or datetime.now(UTC)
        statuses = []
        for user_id in await self.store.list_user_ids():
            try:
                credential = await self.store.load(user_id)
            except StorageError as e:
                logger.warning("token_status_unreadable", user_id=user_id, error=str(e))
                continue
            if credential is None:
                continue
            statuses.append(
                TokenStatus(
                    user_id=user_id,
                    workspace=credential.workspace_name or "Unknown",
                    token_prefix=credential.access_token[:TOKEN_PREFIX_LENGTH],
                    has_refresh_token=credential.is_rotating,
                    expires_at=credential.expires_at,
                    time_remaining=format_time_remaining(credential.expires_at, now),
                    is_expired=credential.expires_at <= now,
                    last_refreshed=(
                        credential.last_refreshed.isoformat()
                        if credential.last_refreshed
                        else "Never"
                    ),
                )
            )
        return statuses

    async def connect(self, user_id: str, bundle: TokenBundle) -> Credential:
        """Persist a fresh OAuth grant, replacing any previous credential."""
        now = datetime.now(UTC)
        credential = Credential(
            user_id=user_id,
            access_token=bundle.access_token,
            refresh_token=bundle.refresh_token,
            expires_at=self._expires_at(bundle, now),
            workspace_id=bundle.team_id,
            workspace_name=bundle.team_name,
            scope=bundle.scope,
            bot_user_id=bundle.bot_user_id,
            authed_user_id=bundle.authed_user_id,
            created_at=now,
        )
        await self.store.save(user_id, credential, clear_refresh_token=True)
        await self.audit.record(
            AuditAction.TOKEN_CREATED,
            user_id,
            workspace_id=bundle.team_id,
            detail="rotating" if bundle.refresh_token else "legacy",
        )
        logger.info(
            "slack_connected",
            user_id=user_id,
            workspace_id=bundle.team_id,
            has_refresh_token=credential.is_rotating,
        )
        return credential

    async def disconnect(self, user_id: str) -> bool:
        """Revoke (best effort) and clear the user's credential."""
        workspace_id = None
        try:
            credential = await self.store.load(user_id)
        except StorageError as e:
            logger.warning("disconnect_credential_unreadable", user_id=user_id, error=str(e))
            credential = None

        if credential is not None:
            workspace_id = credential.workspace_id
            try:
                await self.gateway.revoke_token(credential.access_token)
            except ThreadlyError as e:
                logger.info("slack_token_revoke_failed", user_id=user_id, error=e.message)

        cleared = await self.store.clear(user_id)
        if cleared:
            await self.audit.record(
                AuditAction.TOKEN_DELETED, user_id, workspace_id=workspace_id
            )
            logger.info("slack_disconnected", user_id=user_id)
        return cleared

    # ------------------------------------------------------------------
    # Single-flight internals
    # ------------------------------------------------------------------

    async def _single_flight(
        self, user_id: str, factory: Callable[[], Awaitable[Any]]
    ) -> Any:
        task = self._inflight.get(user_id)
        if task is None:
            task = asyncio.create_task(factory(), name=f"token-lifecycle-{user_id}")
            self._inflight[user_id] = task
            task.add_done_callback(lambda t, uid=user_id: self._forget(uid, t))
        else:
            logger.debug("token_refresh_joined", user_id=user_id)
        return await asyncio.shield(task)

    def _forget(self, user_id: str, task: asyncio.Task[Any]) -> None:
        if self._inflight.get(user_id) is task:
            del self._inflight[user_id]
        # Retrieve the exception so an unawaited failure is not reported
        if not task.cancelled():
            task.exception()

    async def _refresh_flight(
        self,
        user_id: str,
        *,
        min_validity: timedelta | None,
        allow_migration: bool,
    ) -> Credential:
        """Body of a refresh task.

        ``min_validity`` of None forces a refresh; otherwise the platform is
        only called if the re-read credential expires within it.
        """
        credential = await self.store.load(user_id)
        if credential is None:
            raise NoCredentialError(user_id)

        if min_validity is not None and not credential.expires_within(min_validity):
            logger.debug("token_refresh_skipped_already_fresh", user_id=user_id)
            return credential

        if not credential.is_rotating:
            if not allow_migration:
                raise NoRefreshTokenError(user_id)
            try:
                migrated = await self._exchange_legacy(credential)
            except (StorageError, NoCredentialError):
                raise
            except ThreadlyError as e:
                logger.warning("token_migration_failed", user_id=user_id, error=e.message)
                raise NoRefreshTokenError(user_id) from e
            if not migrated.is_rotating:
                raise NoRefreshTokenError(user_id)
            return migrated

        return await self._refresh_credential(credential)

    async def _migrate_flight(self, user_id: str) -> Credential | None:
        credential = await self.store.load(user_id)
        if credential is None:
            return None
        if credential.is_rotating:
            return credential
        return await self._exchange_legacy(credential)

    async def _refresh_credential(self, credential: Credential) -> Credential:
        user_id = credential.user_id
        assert credential.refresh_token is not None

        def before_sleep_log(retry_state: Any) -> None:
            logger.warning(
                "token_refresh_retry",
                user_id=user_id,
                attempt=retry_state.attempt_number,
                max_attempts=self.settings.refresh_max_attempts,
                wait_seconds=retry_state.next_action.sleep
                if retry_state.next_action
                else 0,
                error=str(retry_state.outcome.exception())
                if retry_state.outcome
                else None,
            )

        try:
            async for attempt in AsyncRetrying(
                wait=self._retry_wait,
                stop=stop_after_attempt(self.settings.refresh_max_attempts),
                retry=retry_if_exception_type(TransportError),
                before_sleep=before_sleep_log,
                reraise=True,
            ):
                with attempt:
                    bundle = await self.gateway.refresh_token(credential.refresh_token)
        except RefreshRejectedError as e:
            logger.error(
                "refresh_token_rejected",
                user_id=user_id,
                platform_error=e.platform_error,
            )
            await self.audit.record(
                AuditAction.TOKEN_REFRESH_FAILED,
                user_id,
                workspace_id=credential.workspace_id,
                detail=e.platform_error,
            )
            raise RefreshRejectedError(
                e.message, user_id=user_id, platform_error=e.platform_error
            ) from e
        except TransportError:
            logger.error(
                "token_refresh_failed",
                user_id=user_id,
                attempts=self.settings.refresh_max_attempts,
            )
            raise

        now = datetime.now(UTC)
        updated = credential.with_tokens(
            access_token=bundle.access_token,
            refresh_token=bundle.refresh_token,
            expires_at=self._expires_at(bundle, now),
            last_refreshed=now,
        )
        await self.store.save(user_id, updated)
        await self.audit.record(
            AuditAction.TOKEN_REFRESHED, user_id, workspace_id=credential.workspace_id
        )
        logger.info(
            "token_refresh_success",
            user_id=user_id,
            expires_at=updated.expires_at.isoformat(),
        )
        return updated

    async def _exchange_legacy(self, credential: Credential) -> Credential:
        bundle = await self.gateway.exchange_legacy_token(credential.access_token)
        now = datetime.now(UTC)
        updated = credential.with_tokens(
            access_token=bundle.access_token,
            refresh_token=bundle.refresh_token,
            expires_at=self._expires_at(bundle, now),
            last_refreshed=now,
        )
        await self.store.save(credential.user_id, updated)
        await self.audit.record(
            AuditAction.TOKEN_MIGRATED,
            credential.user_id,
            workspace_id=credential.workspace_id,
        )
        logger.info(
            "token_migrated",
            user_id=credential.user_id,
            has_refresh_token=updated.is_rotating,
        )
        return updated

    def _expires_at(self, bundle: TokenBundle, now: datetime) -> datetime:
        seconds = bundle.expires_in or self.slack_settings.legacy_token_ttl_seconds
        return now + timedelta(seconds=seconds)
