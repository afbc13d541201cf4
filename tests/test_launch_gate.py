"""Launch gate state machine: decision table, fail-closed, polling lifecycle."""
import asyncio

import httpx
import pytest

from apps.storefront.config import StorefrontSettings
from apps.storefront.launch_gate import (
    GateState,
    LaunchGate,
    LaunchStatus,
    LaunchStatusError,
    RenderKind,
    can_access,
    fetch_launch_status,
)

STATUS_URL = "http://api.test/api/v1/launch/status"


def _status(is_launched: bool, pre_launch_enabled: bool) -> dict:
    return {"success": True, "data": {"isLaunched": is_launched, "preLaunchEnabled": pre_launch_enabled}}


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _gate(client, poll_interval=60.0) -> LaunchGate:
    return LaunchGate(STATUS_URL, holding_route="/pre-launch", poll_interval=poll_interval, client=client)


@pytest.mark.parametrize(
    "is_launched,pre_launch_enabled,expected",
    [(True, True, True), (False, True, False), (False, False, True), (True, False, True)],
)
def test_can_access_table(is_launched, pre_launch_enabled, expected):
    assert can_access(LaunchStatus(isLaunched=is_launched, preLaunchEnabled=pre_launch_enabled)) is expected


@pytest.mark.asyncio
@pytest.mark.timeout(10)
@pytest.mark.parametrize(
    "is_launched,pre_launch_enabled,expected",
    [
        (True, True, GateState.GRANTED),
        (False, True, GateState.DENIED),
        (False, False, GateState.GRANTED),
        (True, False, GateState.GRANTED),
    ],
)
async def test_gate_decision_from_endpoint(is_launched, pre_launch_enabled, expected):
    async with _client(lambda request: httpx.Response(200, json=_status(is_launched, pre_launch_enabled))) as client:
        async with _gate(client) as gate:
            state = await gate.wait_resolved(timeout=5)
            assert state is expected
            assert gate.is_loading is False
            assert gate.can_access is (expected is GateState.GRANTED)


@pytest.mark.asyncio
@pytest.mark.timeout(10)
async def test_loading_until_first_check():
    release = asyncio.Event()

    async def handler(request):
        await release.wait()
        return httpx.Response(200, json=_status(True, True))

    async with _client(handler) as client:
        async with _gate(client) as gate:
            await asyncio.sleep(0.05)
            assert gate.state is GateState.LOADING
            assert gate.render().kind is RenderKind.LOADING
            release.set()
            assert await gate.wait_resolved(timeout=5) is GateState.GRANTED
            assert gate.render().kind is RenderKind.CONTENT


@pytest.mark.asyncio
@pytest.mark.timeout(10)
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"success": False, "error": "maintenance"}),
        httpx.Response(200, json={"success": True}),
        httpx.Response(200, json={"success": True, "data": {"isLaunched": "yes", "preLaunchEnabled": False}}),
        httpx.Response(200, json={"success": "true", "data": {"isLaunched": True, "preLaunchEnabled": False}}),
        httpx.Response(200, json=["unexpected"]),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(502, json=_status(True, False)),
    ],
)
async def test_fail_closed_on_bad_response(response):
    async with _client(lambda request: response) as client:
        async with _gate(client) as gate:
            assert await gate.wait_resolved(timeout=5) is GateState.DENIED
            decision = gate.render()
            assert decision.kind is RenderKind.REDIRECT
            assert decision.location == "/pre-launch"
            assert decision.replace is True


@pytest.mark.asyncio
@pytest.mark.timeout(10)
async def test_fail_closed_on_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        async with _gate(client) as gate:
            assert await gate.wait_resolved(timeout=5) is GateState.DENIED


@pytest.mark.asyncio
@pytest.mark.timeout(10)
async def test_failure_overrides_previous_grant():
    responses = [httpx.Response(200, json=_status(True, True)), httpx.Response(200, json={"success": False})]

    async with _client(lambda request: responses.pop(0)) as client:
        async with _gate(client) as gate:
            assert await gate.wait_resolved(timeout=5) is GateState.GRANTED
            assert await gate.check_status() is GateState.DENIED
            assert gate.can_access is False


@pytest.mark.asyncio
@pytest.mark.timeout(10)
async def test_fetch_launch_status_raises_on_reported_failure():
    async with _client(lambda request: httpx.Response(200, json={"success": False})) as client:
        with pytest.raises(LaunchStatusError):
            await fetch_launch_status(client, STATUS_URL)


@pytest.mark.asyncio
@pytest.mark.timeout(10)
async def test_result_after_unmount_is_discarded():
    entered = asyncio.Event()
    release = asyncio.Event()

    async def handler(request):
        entered.set()
        await release.wait()
        return httpx.Response(200, json=_status(True, True))

    async with _client(handler) as client:
        gate = _gate(client)
        await gate.mount()
        pending = asyncio.create_task(gate.check_status())
        await asyncio.wait_for(entered.wait(), 5)
        await gate.unmount()
        release.set()
        await asyncio.wait_for(pending, 5)
        assert gate.mounted is False
        assert gate.state is GateState.LOADING


@pytest.mark.asyncio
@pytest.mark.timeout(10)
async def test_stale_response_does_not_win():
    slow_entered = asyncio.Event()
    release_slow = asyncio.Event()
    calls = {"n": 0}

    async def handler(request):
        calls["n"] += 1
        n = calls["n"]
        if n == 1:
            return httpx.Response(200, json=_status(True, True))
        if n == 2:
            slow_entered.set()
            await release_slow.wait()
            return httpx.Response(200, json=_status(True, True))
        return httpx.Response(200, json=_status(False, True))

    async with _client(handler) as client:
        async with _gate(client) as gate:
            assert await gate.wait_resolved(timeout=5) is GateState.GRANTED
            slow = asyncio.create_task(gate.check_status())
            await asyncio.wait_for(slow_entered.wait(), 5)
            assert await gate.check_status() is GateState.DENIED
            release_slow.set()
            await asyncio.wait_for(slow, 5)
            assert gate.state is GateState.DENIED


@pytest.mark.asyncio
@pytest.mark.timeout(10)
async def test_polls_until_unmounted():
    state = {"payload": _status(False, True), "calls": 0}

    def handler(request):
        state["calls"] += 1
        return httpx.Response(200, json=state["payload"])

    async with _client(handler) as client:
        gate = _gate(client, poll_interval=0.02)
        await gate.mount()
        assert await gate.wait_resolved(timeout=5) is GateState.DENIED

        state["payload"] = _status(True, True)
        for _ in range(100):
            if gate.state is GateState.GRANTED:
                break
            await asyncio.sleep(0.01)
        assert gate.state is GateState.GRANTED
        assert state["calls"] >= 2

        await gate.unmount()
        calls_at_unmount = state["calls"]
        await asyncio.sleep(0.1)
        assert state["calls"] == calls_at_unmount


@pytest.mark.asyncio
@pytest.mark.timeout(10)
async def test_pre_launch_redirects_within_one_poll_cycle():
    async with _client(lambda request: httpx.Response(200, json=_status(False, True))) as client:
        async with _gate(client, poll_interval=0.05) as gate:
            await gate.wait_resolved(timeout=gate.poll_interval + 1)
            decision = gate.render()
            assert decision.kind is RenderKind.REDIRECT
            assert decision.location == "/pre-launch"


@pytest.mark.asyncio
@pytest.mark.timeout(10)
async def test_remount_starts_loading_again():
    async with _client(lambda request: httpx.Response(200, json=_status(True, False))) as client:
        gate = _gate(client)
        async with gate:
            assert await gate.wait_resolved(timeout=5) is GateState.GRANTED
        await gate.mount()
        try:
            assert gate.state in (GateState.LOADING, GateState.GRANTED)
            assert await gate.wait_resolved(timeout=5) is GateState.GRANTED
        finally:
            await gate.unmount()


def test_gate_from_settings():
    s = StorefrontSettings(
        api_base_url="http://api.test/",
        launch_poll_interval_ms=15000,
        holding_route="/soon",
    )
    gate = LaunchGate.from_settings(s)
    assert gate.status_url == "http://api.test/api/v1/launch/status"
    assert gate.poll_interval == 15.0
    assert gate.holding_route == "/soon"
    assert gate.state is GateState.LOADING
