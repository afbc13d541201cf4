"""Launch gate: decides whether the storefront is served or sent to the pre-launch page.

States: LOADING until the first status check resolves, then DENIED or GRANTED.
Only a successful check with ``isLaunched or not preLaunchEnabled`` grants;
``success: false``, transport errors and malformed payloads all deny.

The gate is tied to the lifetime of the region it protects: ``mount()`` runs
one check immediately and then polls every ``poll_interval`` seconds;
``unmount()`` cancels polling and any result arriving afterwards is dropped.
A response older than one already applied is dropped too.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

import httpx
from pydantic import BaseModel, ConfigDict, StrictBool, ValidationError

from apps.storefront.config import StorefrontSettings

logger = logging.getLogger(__name__)


class LaunchStatusError(Exception):
    pass


class LaunchStatus(BaseModel):
    model_config = ConfigDict(extra="ignore")

    isLaunched: StrictBool
    preLaunchEnabled: StrictBool


class LaunchStatusEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: StrictBool
    data: LaunchStatus | None = None


def can_access(status: LaunchStatus) -> bool:
    return status.isLaunched or not status.preLaunchEnabled


async def fetch_launch_status(client: httpx.AsyncClient, url: str) -> LaunchStatus:
    """GET the status endpoint; anything but a well-formed success raises LaunchStatusError."""
    try:
        r = await client.get(url)
    except httpx.HTTPError as e:
        raise LaunchStatusError(f"transport: {type(e).__name__}: {str(e)[:120]}") from e
    if not r.is_success:
        raise LaunchStatusError(f"http_status={r.status_code}")
    try:
        body = r.json()
    except ValueError as e:
        raise LaunchStatusError("response is not JSON") from e
    try:
        envelope = LaunchStatusEnvelope.model_validate(body)
    except ValidationError as e:
        raise LaunchStatusError(f"unexpected payload shape: {e.error_count()} error(s)") from e
    if not envelope.success:
        raise LaunchStatusError("status endpoint reported failure")
    if envelope.data is None:
        raise LaunchStatusError("status payload has no data")
    return envelope.data


class GateState(str, Enum):
    LOADING = "loading"
    DENIED = "denied"
    GRANTED = "granted"

    @property
    def is_loading(self) -> bool:
        return self is GateState.LOADING

    @property
    def can_access(self) -> bool:
        return self is GateState.GRANTED


class RenderKind(str, Enum):
    LOADING = "loading"
    REDIRECT = "redirect"
    CONTENT = "content"


@dataclass(frozen=True)
class GateDecision:
    kind: RenderKind
    location: str | None = None
    # redirect must not leave a history entry pointing back into the gated region
    replace: bool = False


class LaunchGate:
    def __init__(
        self,
        status_url: str,
        *,
        holding_route: str = "/pre-launch",
        poll_interval: float = 30.0,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.status_url = status_url
        self.holding_route = holding_route
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._state = GateState.LOADING
        self._mounted = False
        self._generation = 0
        self._issued = 0
        self._applied = 0
        self._task: asyncio.Task | None = None
        self._resolved = asyncio.Event()

    @classmethod
    def from_settings(cls, settings: StorefrontSettings, client: httpx.AsyncClient | None = None) -> "LaunchGate":
        return cls(
            settings.launch_status_url,
            holding_route=settings.holding_route,
            poll_interval=settings.launch_poll_interval_seconds,
            timeout=settings.launch_request_timeout_seconds,
            client=client,
        )

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def can_access(self) -> bool:
        return self._state.can_access

    @property
    def mounted(self) -> bool:
        return self._mounted

    async def mount(self) -> None:
        if self._mounted:
            return
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        self._generation += 1
        self._issued = 0
        self._applied = 0
        self._state = GateState.LOADING
        self._resolved = asyncio.Event()
        self._mounted = True
        self._task = asyncio.create_task(self._poll_loop())

    async def unmount(self) -> None:
        if not self._mounted:
            return
        self._mounted = False
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "LaunchGate":
        await self.mount()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.unmount()

    async def wait_resolved(self, timeout: float | None = None) -> GateState:
        """Wait until the first check of the current mount has been applied."""
        await asyncio.wait_for(self._resolved.wait(), timeout)
        return self._state

    async def _poll_loop(self) -> None:
        while True:
            await self.check_status()
            await asyncio.sleep(self.poll_interval)

    async def check_status(self) -> GateState:
        if not self._mounted or self._client is None:
            return self._state
        generation = self._generation
        self._issued += 1
        seq = self._issued
        try:
            granted = can_access(await fetch_launch_status(self._client, self.status_url))
        except LaunchStatusError as e:
            logger.warning("launch_gate: status check failed, denying access: %s", e)
            granted = False
        except Exception as e:
            logger.warning("launch_gate: status check error, denying access: %s", str(e)[:200])
            granted = False

        if not self._mounted or generation != self._generation:
            logger.debug("launch_gate: dropping result that arrived after unmount")
            return self._state
        if seq < self._applied:
            logger.debug("launch_gate: dropping stale result seq=%s applied=%s", seq, self._applied)
            return self._state
        self._applied = seq
        self._state = GateState.GRANTED if granted else GateState.DENIED
        self._resolved.set()
        return self._state

    def render(self) -> GateDecision:
        if self._state is GateState.LOADING:
            return GateDecision(RenderKind.LOADING)
        if self._state is GateState.DENIED:
            return GateDecision(RenderKind.REDIRECT, location=self.holding_route, replace=True)
        return GateDecision(RenderKind.CONTENT)
