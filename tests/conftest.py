"""Shared fixtures: an in-memory Cloud Databases API behind httpx.MockTransport."""

from typing import Any

import httpx
import pytest

from clouddb import auth, connection, transport

AUTH_HOSTS = {httpx.URL(auth.AUTH_USA).host, httpx.URL(auth.AUTH_UK).host}
ACCOUNT_ID = "123456"
MANAGEMENT_URL = f"https://servers.api.rackspacecloud.com/v1.0/{ACCOUNT_ID}"
SERVICE_HOST = "dfw.databases.api.rackspacecloud.com"
SERVICE_PATH = f"/v1.0/{ACCOUNT_ID}"


class FakeApi:
    """Callable handler for httpx.MockTransport.

    Routes are keyed on (method, raw path relative to the service path).
    Each route holds a list of steps consumed in order; the last step
    repeats. A step is either an exception instance (raised) or a
    ``(status, body)`` tuple, where a bytes body is sent raw and anything
    else as JSON.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.auth_count = 0
        self.auth_status = 204
        self.auth_headers: dict[str, str] | None = None
        self.routes: dict[tuple[str, str], list[Any]] = {}

    def add(self, method: str, path: str, *steps: Any) -> None:
        self.routes.setdefault((method, path), []).extend(steps)

    @property
    def api_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host not in AUTH_HOSTS]

    def _auth(self) -> httpx.Response:
        self.auth_count += 1
        if self.auth_headers is not None:
            return httpx.Response(self.auth_status, headers=self.auth_headers)
        return httpx.Response(
            self.auth_status,
            headers={
                "X-Auth-Token": f"token-{self.auth_count}",
                "X-Server-Management-Url": MANAGEMENT_URL,
            },
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host in AUTH_HOSTS:
            return self._auth()

        raw_path = request.url.raw_path.decode()
        path = raw_path.removeprefix(SERVICE_PATH)
        steps = self.routes.get((request.method, path))
        if not steps:
            return httpx.Response(
                404,
                json={"itemNotFound": {"message": f"No route for {path}", "code": 404}},
            )
        step = steps.pop(0) if len(steps) > 1 else steps[0]
        if isinstance(step, BaseException):
            raise step
        status, body = step
        if body is None:
            return httpx.Response(status)
        if isinstance(body, bytes):
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=body)


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def http_transport(fake_api: FakeApi) -> transport.HttpxTransport:
    return transport.HttpxTransport(transport=httpx.MockTransport(fake_api))


@pytest.fixture
def conn(http_transport: transport.HttpxTransport) -> connection.Connection:
    """Connection logged in against the fake API."""
    return connection.Connection(
        username="user",
        api_key="secret",
        region="dfw",
        verbose=False,
        servicenet=False,
        transport=http_transport,
    )


def _instance_body(instance_id: str = "abc-123", **overrides: Any) -> dict[str, Any]:
    body = {
        "id": instance_id,
        "name": "mydb",
        "hostname": f"{instance_id}.rackspaceclouddb.com",
        "created": "2012-03-28T21:31:02",
        "updated": "2012-03-28T21:31:02",
        "status": "ACTIVE",
        "flavor": {"id": "1", "links": [{"href": "https://example/flavors/1", "rel": "self"}]},
        "volume": {"size": 2},
        "links": [],
    }
    body.update(overrides)
    return body


@pytest.fixture
def instance_body():
    """Factory for instance records as the API returns them."""
    return _instance_body
