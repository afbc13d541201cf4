"""Storefront app behind the launch gate."""
import asyncio
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from apps.storefront.config import StorefrontSettings
from apps.storefront.launch_gate import GateState
from apps.storefront.main import create_app


def _settings(**kw) -> StorefrontSettings:
    base = dict(api_base_url="http://api.test", launch_poll_interval_ms=60000, holding_route="/pre-launch")
    base.update(kw)
    return StorefrontSettings(**base)


def _status_client(payload: dict) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, json=payload)))


def _wait_resolved(app, timeout=5.0) -> GateState:
    deadline = time.monotonic() + timeout
    gate = app.state.launch_gate
    while gate.state is GateState.LOADING and time.monotonic() < deadline:
        time.sleep(0.01)
    return gate.state


@pytest.mark.timeout(10)
def test_pre_launch_redirects_to_holding_page():
    app = create_app(
        _settings(),
        client=_status_client({"success": True, "data": {"isLaunched": False, "preLaunchEnabled": True}}),
    )
    with TestClient(app) as client:
        assert _wait_resolved(app) is GateState.DENIED
        r = client.get("/", follow_redirects=False)
        assert r.status_code == 303
        assert r.headers["location"] == "/pre-launch"
        assert r.headers["cache-control"] == "no-store"

        # holding page itself is reachable, no redirect loop
        r2 = client.get("/", follow_redirects=True)
        assert r2.status_code == 200
        assert str(r2.url).endswith("/pre-launch")


@pytest.mark.timeout(10)
def test_launched_serves_content():
    app = create_app(
        _settings(),
        client=_status_client({"success": True, "data": {"isLaunched": True, "preLaunchEnabled": True}}),
    )
    with TestClient(app) as client:
        assert _wait_resolved(app) is GateState.GRANTED
        r = client.get("/", follow_redirects=False)
        assert r.status_code == 200
        assert "Tendo Market" in r.text


@pytest.mark.timeout(10)
def test_status_error_fails_closed():
    app = create_app(_settings(), client=_status_client({"success": False}))
    with TestClient(app) as client:
        assert _wait_resolved(app) is GateState.DENIED
        r = client.get("/", follow_redirects=False)
        assert r.status_code == 303


@pytest.mark.timeout(10)
def test_loading_page_while_first_check_pending():
    async def slow(request):
        await asyncio.sleep(30)
        return httpx.Response(200, json={"success": True, "data": {"isLaunched": True, "preLaunchEnabled": False}})

    app = create_app(_settings(), client=httpx.AsyncClient(transport=httpx.MockTransport(slow)))
    with TestClient(app) as client:
        r = client.get("/", follow_redirects=False)
        assert r.status_code == 503
        assert r.headers["retry-after"] == "1"
        assert app.state.launch_gate.state is GateState.LOADING


@pytest.mark.timeout(10)
def test_exempt_paths_bypass_gate():
    app = create_app(_settings(), client=_status_client({"success": False}))
    with TestClient(app) as client:
        _wait_resolved(app)
        assert client.get("/health", follow_redirects=False).status_code == 200
        assert client.get("/pre-launch", follow_redirects=False).status_code == 200


@pytest.mark.timeout(10)
def test_without_running_gate_fails_closed():
    app = create_app(_settings(), client=_status_client({"success": True, "data": {"isLaunched": True, "preLaunchEnabled": False}}))
    # no lifespan: gate never mounted
    client = TestClient(app)
    r = client.get("/", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/pre-launch"


@pytest.mark.timeout(10)
def test_gate_unmounted_on_shutdown():
    app = create_app(
        _settings(),
        client=_status_client({"success": True, "data": {"isLaunched": True, "preLaunchEnabled": False}}),
    )
    with TestClient(app):
        _wait_resolved(app)
        assert app.state.launch_gate.mounted is True
    assert app.state.launch_gate.mounted is False
