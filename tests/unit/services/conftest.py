import pytest
from tenacity import wait_none

from threadly.scheduling.delivery import DeliveryScheduler
from threadly.services.connections import ConnectionService
from threadly.services.messaging import MessagingService
from threadly.tokens.lifecycle import TokenLifecycleManager


@pytest.fixture
def lifecycle(token_store, gateway, audit_repo, scheduler_settings, slack_settings):
    return TokenLifecycleManager(
        token_store,
        gateway,
        audit=audit_repo,
        settings=scheduler_settings,
        slack_settings=slack_settings,
        retry_wait=wait_none(),
    )


@pytest.fixture
async def delivery(message_store, lifecycle, gateway):
    scheduler = DeliveryScheduler(message_store, lifecycle, gateway, retry_wait=wait_none())
    yield scheduler
    await scheduler.aclose(timeout=5)


@pytest.fixture
def connections(gateway, lifecycle):
    return ConnectionService(gateway, lifecycle)


@pytest.fixture
def messaging(message_store, lifecycle, gateway, delivery):
    return MessagingService(message_store, lifecycle, gateway, delivery)
