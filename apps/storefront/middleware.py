"""Middleware: серверная проверка launch gate для витрины."""
import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import HTMLResponse, RedirectResponse

from apps.storefront.launch_gate import GateDecision, RenderKind

logger = logging.getLogger(__name__)

LOADING_HTML = """<!doctype html>
<html lang="ru">
<head><meta charset="utf-8"><meta http-equiv="refresh" content="1"><title>Загрузка…</title></head>
<body><div class="min-h-screen flex items-center justify-center"><div class="spinner" role="status">Загрузка…</div></div></body>
</html>
"""

_NO_STORE = {"Cache-Control": "no-store"}


class LaunchGateMiddleware(BaseHTTPMiddleware):
    """Serves the app only while ``app.state.launch_gate`` grants access.

    The holding route and ``exempt_paths`` prefixes are never gated.
    """

    def __init__(self, app, holding_route: str = "/pre-launch", exempt_paths=()):
        super().__init__(app)
        self.holding_route = holding_route.rstrip("/") or "/"
        self.exempt_paths = tuple(exempt_paths)

    def _is_exempt(self, path: str) -> bool:
        if path == self.holding_route or path.startswith(self.holding_route + "/"):
            return True
        return any(path == p or (p.endswith("/") and path.startswith(p)) for p in self.exempt_paths)

    def _decision(self, request: Request) -> GateDecision:
        gate = getattr(request.app.state, "launch_gate", None)
        if gate is None or not gate.mounted:
            # no running gate: fail closed
            return GateDecision(RenderKind.REDIRECT, location=self.holding_route, replace=True)
        return gate.render()

    async def dispatch(self, request: Request, call_next):
        if self._is_exempt(request.url.path):
            return await call_next(request)
        decision = self._decision(request)
        if decision.kind is RenderKind.CONTENT:
            return await call_next(request)
        if decision.kind is RenderKind.LOADING:
            return HTMLResponse(LOADING_HTML, status_code=503, headers={"Retry-After": "1", **_NO_STORE})
        logger.debug("launch_gate_redirect path=%s to=%s", request.url.path, decision.location)
        # 303: the browser replaces the request with a GET of the holding page
        return RedirectResponse(decision.location or self.holding_route, status_code=303, headers=_NO_STORE)
