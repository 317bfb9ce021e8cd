"""Connecting and disconnecting Slack workspaces, plus token administration."""

import shortuuid
import structlog
from pydantic import BaseModel, ConfigDict, Field

from threadly.exceptions import ValidationError
from threadly.slack.gateway import SlackGateway
from threadly.tokens.lifecycle import TokenLifecycleManager
from threadly.tokens.models import (
    Credential,
    MigrationResult,
    RekeyResult,
    SweepResult,
    TokenStatus,
)


logger = structlog.get_logger(__name__)


class Workspace(BaseModel):
    id: str
    name: str


class OAuthResult(BaseModel):
    """Outcome of a successful OAuth code exchange."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    workspace: Workspace


class ConnectionService:
    """OAuth connection flow and credential administration."""

    def __init__(self, gateway: SlackGateway, lifecycle: TokenLifecycleManager) -> None:
        self.gateway = gateway
        self.lifecycle = lifecycle

    def authorization_url(self, state: str | None = None) -> str:
        return self.gateway.build_authorization_url(state or shortuuid.uuid())

    async def exchange_oauth_code(self, code: str, user_id: str) -> OAuthResult:
        """Exchange an authorization code and store the resulting credential.

        Nothing is persisted when the exchange fails.

        Raises:
            ValidationError: Missing code or user id
            InvalidCodeError: Slack rejected the code or answered incompletely
            StorageError: The credential could not be stored
        """
        if not code or not code.strip():
            raise ValidationError("No authorization code provided", details={"field": "code"})
        if not user_id or not user_id.strip():
            raise ValidationError("No user ID provided", details={"field": "userId"})

        logger.info("oauth_code_exchange_started", user_id=user_id)
        bundle = await self.gateway.exchange_code(code)
        await self.lifecycle.connect(user_id, bundle)

        assert bundle.team_id is not None and bundle.team_name is not None
        return OAuthResult(
            user_id=user_id,
            workspace=Workspace(id=bundle.team_id, name=bundle.team_name),
        )

    async def disconnect(self, user_id: str) -> bool:
        if not user_id:
            raise ValidationError("No user ID provided", details={"field": "userId"})
        return await self.lifecycle.disconnect(user_id)

    async def token_status(self) -> list[TokenStatus]:
        return await self.lifecycle.token_status()

    async def force_token_migration(self) -> MigrationResult:
        return await self.lifecycle.migrate_all()

    async def rekey_tokens(self) -> RekeyResult:
        return await self.lifecycle.rekey_all()

    async def sweep_tokens(self) -> SweepResult:
        return await self.lifecycle.sweep()

    async def refresh_user_token(self, user_id: str) -> Credential:
        return await self.lifecycle.refresh(user_id)
