import pytest
from tenacity import wait_none

from threadly.scheduling.delivery import DeliveryScheduler
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
def delivery(message_store, lifecycle, gateway):
    return DeliveryScheduler(
        message_store, lifecycle, gateway, max_concurrent=5, retry_wait=wait_none()
    )
