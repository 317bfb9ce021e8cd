"""FastAPI dependencies resolving services from application state."""

from typing import Annotated

from fastapi import Depends, Request

from threadly.config.settings import Settings
from threadly.services.connections import ConnectionService
from threadly.services.messaging import MessagingService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings  # type: ignore[no-any-return]


def get_connection_service(request: Request) -> ConnectionService:
    return request.app.state.connection_service  # type: ignore[no-any-return]


def get_messaging_service(request: Request) -> MessagingService:
    return request.app.state.messaging_service  # type: ignore[no-any-return]


SettingsDep = Annotated[Settings, Depends(get_app_settings)]
ConnectionServiceDep = Annotated[ConnectionService, Depends(get_connection_service)]
MessagingServiceDep = Annotated[MessagingService, Depends(get_messaging_service)]
