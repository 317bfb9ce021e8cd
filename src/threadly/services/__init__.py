"""Boundary operations used by the HTTP API and the CLI."""

from threadly.services.connections import ConnectionService, OAuthResult
from threadly.services.container import ServiceContainer
from threadly.services.messaging import MessagingService


__all__ = ["ConnectionService", "MessagingService", "OAuthResult", "ServiceContainer"]
