"""Витрина: приложение за launch gate."""
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import APIRouter, FastAPI
from fastapi.responses import HTMLResponse

from apps.storefront.config import StorefrontSettings, get_storefront_settings
from apps.storefront.launch_gate import LaunchGate
from apps.storefront.middleware import LaunchGateMiddleware

logger = logging.getLogger(__name__)

PRE_LAUNCH_HTML = """<!doctype html>
<html lang="ru">
<head><meta charset="utf-8"><title>Tendo Market: скоро открытие</title></head>
<body><main><h1>Tendo Market</h1><p>Мы скоро откроемся.</p></main></body>
</html>
"""

index_router = APIRouter()


@index_router.get("/", response_class=HTMLResponse)
def index():
    return "<!doctype html><html><body><h1>Tendo Market</h1></body></html>"


def create_app(
    settings: StorefrontSettings | None = None,
    content: APIRouter | None = None,
    client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Storefront app; ``content`` is the gated region, ``client`` overrides the status HTTP client."""
    s = settings or get_storefront_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        gate = LaunchGate.from_settings(s, client=client)
        app.state.launch_gate = gate
        async with gate:
            logger.info("launch_gate mounted url=%s interval=%ss", gate.status_url, gate.poll_interval)
            yield
        logger.info("launch_gate unmounted")

    app = FastAPI(title="Tendo Market", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        LaunchGateMiddleware,
        holding_route=s.holding_route,
        exempt_paths=s.gate_exempt_paths,
    )

    @app.get(s.holding_route, response_class=HTMLResponse, include_in_schema=False)
    def pre_launch():
        return PRE_LAUNCH_HTML

    @app.get("/health")
    def health():
        gate = getattr(app.state, "launch_gate", None)
        return {"status": "ok", "gate": gate.state.value if gate else None}

    app.include_router(content or index_router)
    return app
