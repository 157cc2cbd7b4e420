from typing import Callable, List

import httpx
import pytest_asyncio

from waterwheel.request import Request

BASE = "https://main.example"


class Recorder:
    """Collects every request the mock site receives."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.handler = handler
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest_asyncio.fixture
async def make_request():
    """Build a Request whose transport is served by ``handler``."""
    clients = []

    def factory(handler, base: str = BASE, credentials=None):
        recorder = Recorder(handler)
        client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
        clients.append(client)
        return Request(base, credentials, client=client), recorder

    yield factory

    for client in clients:
        await client.aclose()
