import pytest

from routecast.backend import http_client


@pytest.fixture(autouse=True)
def _reset_circuit_breaker():
    http_client.reset_api_disable()
    yield
    http_client.reset_api_disable()
