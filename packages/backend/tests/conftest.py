"""Test fixtures — fresh app components per test, a fake clock, fake sockets.

Learn: Every test builds its own AdmissionController, ConnectionRegistry
and app via create_app(), so no rate window or connection leaks from one
test into the next. Time is a FakeClock the test advances by hand, which
makes window boundaries exact instead of sleep-based.
"""

import asyncio
import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from tenderhub.admission.limiter import AdmissionController
from tenderhub.auth.jwt import create_access_token
from tenderhub.main import create_app
from tenderhub.realtime.connection import ConnectionClosed
from tenderhub.realtime.registry import ConnectionRegistry

START = 1_700_000_000.0


class FakeClock:
    """Callable clock returning epoch seconds; advanced manually."""

    def __init__(self, start: float = START):
        self.start = start
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeConnection:
    """In-memory Connection: records sends, replays fed inbound messages."""

    def __init__(self, fail_sends: bool = False, fail_close: bool = False):
        self.sent: list[str] = []
        self.closed = False
        self.close_calls = 0
        self.fail_sends = fail_sends
        self.fail_close = fail_close
        self._inbound: asyncio.Queue = asyncio.Queue()

    async def send_message(self, data: str) -> None:
        if self.fail_sends:
            raise ConnectionResetError("peer reset")
        if self.closed:
            raise RuntimeError("send after close")
        self.sent.append(data)

    async def receive_message(self):
        item = await self._inbound.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.close_calls += 1
        if self.fail_close:
            raise RuntimeError("close failed")
        self.closed = True

    def feed(self, data: str) -> None:
        self._inbound.put_nowait(data)

    def disconnect(self, code: int = 1000) -> None:
        self._inbound.put_nowait(ConnectionClosed(code=code))

    def fail_read(self, exc: BaseException) -> None:
        self._inbound.put_nowait(exc)

    def messages(self) -> list[dict]:
        return [json.loads(m) for m in self.sent]


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def admission(clock):
    return AdmissionController(limit=5, window=60.0, clock=clock)


@pytest.fixture()
def registry():
    return ConnectionRegistry()


@pytest.fixture()
def make_connection():
    """Factory for FakeConnection test doubles."""
    return FakeConnection


@pytest.fixture()
def app(admission, registry):
    return create_app(admission=admission, registry=registry)


@pytest.fixture()
def token():
    """Mint an access token: token("c1", "contractor")."""
    return create_access_token


@pytest.fixture()
def auth_headers(token):
    """Authorization headers for a user: auth_headers("u1", "client")."""

    def _headers(user_id: str, role: str) -> dict:
        return {"Authorization": f"Bearer {token(user_id, role)}"}

    return _headers


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client talking to the app in-process."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture()
async def tender(client, auth_headers):
    """An open tender owned by client "u1"."""
    r = await client.post(
        "/api/v1/client/tenders",
        json={"title": "Office renovation", "description": "Two floors", "budget": 5000},
        headers=auth_headers("u1", "client"),
    )
    assert r.status_code == 201
    return r.json()
