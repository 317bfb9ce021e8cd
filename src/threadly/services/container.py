"""Wiring of the gateway, token lifecycle, delivery and boundary services."""

from dataclasses import dataclass

import httpx
import structlog

from threadly.config.settings import Settings
from threadly.db.repositories import (
    ScheduledMessageStore,
    TokenAuditRepository,
    TokenStore,
)
from threadly.scheduling.delivery import DeliveryScheduler
from threadly.security.token_cipher import TokenCipher
from threadly.services.connections import ConnectionService
from threadly.services.messaging import MessagingService
from threadly.slack.gateway import SlackGateway
from threadly.tokens.lifecycle import TokenLifecycleManager


logger = structlog.get_logger(__name__)


@dataclass
class ServiceContainer:
    """Everything the API server and the CLI share.

    The database must already be initialized; the container only owns the
    gateway's HTTP client and the delivery scheduler's background passes.
    """

    settings: Settings
    gateway: SlackGateway
    lifecycle: TokenLifecycleManager
    messages: ScheduledMessageStore
    delivery: DeliveryScheduler
    connections: ConnectionService
    messaging: MessagingService

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> "ServiceContainer":
        gateway = SlackGateway(settings.slack, http_client=http_client)
        cipher = TokenCipher(settings.security.token_encryption_keys)
        lifecycle = TokenLifecycleManager(
            TokenStore(cipher),
            gateway,
            audit=TokenAuditRepository(),
            settings=settings.scheduler,
            slack_settings=settings.slack,
        )
        messages = ScheduledMessageStore()
        delivery = DeliveryScheduler(
            messages,
            lifecycle,
            gateway,
            max_concurrent=settings.scheduler.max_concurrent_deliveries,
            record_attempts=settings.scheduler.record_max_attempts,
        )
        logger.debug("services_initialized")
        return cls(
            settings=settings,
            gateway=gateway,
            lifecycle=lifecycle,
            messages=messages,
            delivery=delivery,
            connections=ConnectionService(gateway, lifecycle),
            messaging=MessagingService(messages, lifecycle, gateway, delivery),
        )

    async def aclose(self) -> None:
        await self.delivery.aclose(timeout=self.settings.scheduler.graceful_shutdown_timeout)
        await self.gateway.aclose()
