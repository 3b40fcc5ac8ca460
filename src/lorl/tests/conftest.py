import pytest

from lorl.client import LorlClient
from lorl.settings import ClientSettings
from lorl.tests.mocks import TEST_SERVER_URL, MockConnector


@pytest.fixture
def settings() -> ClientSettings:
    return ClientSettings(
        game_id="g1",
        server_url=TEST_SERVER_URL,
        connect_timeout_seconds=0.2,
        list_timeout_seconds=0.05,
    )


@pytest.fixture
def connector() -> MockConnector:
    return MockConnector()


@pytest.fixture
async def client(settings, connector):
    lorl_client = LorlClient(settings, connector=connector)
    yield lorl_client
    await lorl_client.aclose()
