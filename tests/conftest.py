"""
Pytest fixtures for contract-client tests.

The domain API is faked with httpx.MockTransport; every request is recorded so
tests can count calls per endpoint.
"""

import asyncio
import dataclasses
from typing import Callable, Dict, List, Tuple, Union

import httpx
import pytest

from contract_client.common.app_settings import AppSettings
from contract_client.session.manager import Session
from contract_client.session.store import CredentialStore, MemoryCredentialStore

API_URL = "http://api.test/api"

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeApi:
    """Scripted fake of the domain API.

    Responses registered for a route are served in order; the last one is
    repeated once the queue runs out.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[Responder]] = {}
        self.requests: List[httpx.Request] = []
        self.refresh_delay = 0.0

    def add(self, method: str, path: str, *responses: Responder) -> None:
        self.routes.setdefault((method, f"/api{path}"), []).extend(responses)

    def count(self, path: str, method: str | None = None) -> int:
        return sum(
            1
            for r in self.requests
            if r.url.path == f"/api{path}" and (method is None or r.method == method)
        )

    def auth_headers(self, path: str) -> List[str | None]:
        return [
            r.headers.get("Authorization")
            for r in self.requests
            if r.url.path == f"/api{path}"
        ]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/token/refresh/") and self.refresh_delay:
            await asyncio.sleep(self.refresh_delay)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"detail": "Not found."})
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(item):
            return item(request)
        return item

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def config(tmp_path) -> AppSettings:
    return AppSettings(
        app_name="contract-client-test",
        api_url=API_URL,
        http_timeout=5.0,
        refresh_interval=0,
        credential_file=str(tmp_path / "session.json"),
        login_path="/login",
        log_level="DEBUG",
        log_file="",
    )


@pytest.fixture
def store() -> MemoryCredentialStore:
    return MemoryCredentialStore()


@pytest.fixture
def make_session(api, config, store) -> Callable[..., Session]:
    """Build a Session wired to the fake API; must be called inside a loop."""

    def _make(store_override: CredentialStore | None = None, **overrides) -> Session:
        cfg = config
        if overrides:
            cfg = dataclasses.replace(config, **overrides)
        return Session(
            store_override if store_override is not None else store,
            config=cfg,
            http_transport=api.transport(),
        )

    return _make


def signed_in(store: CredentialStore, access: str = "A1", refresh: str = "R1") -> None:
    store.update(
        {
            "user": '{"id":"1","email":"a@b.com"}',
            "accessToken": access,
            "refreshToken": refresh,
        }
    )


def login_response(access: str = "A1", refresh: str = "R1") -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "user": {"id": 1, "email": "a@b.com"},
            "access": access,
            "refresh": refresh,
        },
    )
