"""Shared fixtures: a configuration and a scriptable fake backend."""

from __future__ import annotations

from typing import Callable, List, Tuple, Union

import httpx
import pytest
import pytest_asyncio

from webapi_client.client import BackendClient
from webapi_client.config import ClientCredentials, WebApiConfig
from webapi_client.flow import DelegationFlow

Handler = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeBackend:
    """Routes requests by path prefix and records every request received."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self._routes: List[Tuple[str, Handler]] = []

    def on(self, prefix: str, handler: Handler) -> "FakeBackend":
        self._routes.append((prefix, handler))
        self._routes.sort(key=lambda item: len(item[0]), reverse=True)
        return self

    def requests_to(self, prefix: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith(prefix)]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for prefix, handler in self._routes:
            if request.url.path.startswith(prefix):
                if isinstance(handler, httpx.Response):
                    return handler
                result = handler(request)
                if not isinstance(result, httpx.Response):
                    result = await result
                return result
        return httpx.Response(404, text="no route")


@pytest.fixture
def config() -> WebApiConfig:
    return WebApiConfig(
        credentials=ClientCredentials(
            client_id="client-1",
            client_secret="secret-1",
            api_oauth_secret="oauth-1",
        ),
        web_api_url="https://webapi.test",
        client_base_url="https://client.test",
        request_id="testRequest",
        end_user_id="testEndUser",
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest_asyncio.fixture
async def client(config, backend):
    async with BackendClient(config, transport=httpx.MockTransport(backend)) as backend_client:
        yield backend_client


@pytest.fixture
def flow(client, config) -> DelegationFlow:
    return DelegationFlow(client, config)
