import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Tuple, Union

import httpx
import pytest

# Ensure repo root is on sys.path so 'raworc_mcp' is importable without installing
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from raworc_mcp.client import RaworcClient  # noqa: E402
from raworc_mcp.tools import Dispatcher  # noqa: E402

BASE_URL = "http://raworc.test/api/v0"
PREFIX = "/api/v0"

SESSION = {
    "id": "s1",
    "space": "default",
    "created_by": "admin",
    "state": "RUNNING",
    "container_id": None,
    "persistent_volume_id": None,
    "parent_session_id": None,
    "created_at": "2025-01-02T03:04:05Z",
    "started_at": "2025-01-02T03:04:06Z",
    "last_activity_at": None,
    "terminated_at": None,
    "termination_reason": None,
    "metadata": {"purpose": "demo"},
}

Reply = Union[Tuple[int, Any], Callable[[httpx.Request], httpx.Response], Exception]


class FakeApi:
    """In-memory stand-in for the upstream REST API.

    Replies registered for a route are consumed in order; the last one is
    reused for any further request.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[Reply]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, *replies: Reply) -> None:
        self.routes.setdefault((method, PREFIX + "/" + path.lstrip("/")), []).extend(replies)

    def calls(self, method: str = None, path: str = None) -> List[httpx.Request]:
        out = self.requests
        if method:
            out = [r for r in out if r.method == method]
        if path:
            out = [r for r in out if r.url.path == PREFIX + "/" + path.lstrip("/")]
        return out

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        replies = self.routes.get((request.method, request.url.path))
        if not replies:
            return httpx.Response(500, text=f"no route for {request.method} {request.url.path}")
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        status, body = reply
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body or "")


@pytest.fixture()
def api():
    return FakeApi()


@pytest.fixture()
def make_client(api):
    created = []

    def _make(**kw) -> RaworcClient:
        kw.setdefault("api_url", BASE_URL)
        c = RaworcClient(transport=httpx.MockTransport(api.handler), **kw)
        created.append(c)
        return c

    yield _make
    for c in created:
        c.close()


@pytest.fixture()
def client(make_client):
    return make_client(auth_token="tok")


@pytest.fixture()
def dispatcher(client):
    return Dispatcher(client)
