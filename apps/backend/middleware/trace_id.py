"""Single source for request trace_id. Use scope for ASGI, request.scope for Starlette."""
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

SCOPE_KEY = "trace_id"
HEADER = "X-Trace-Id"


def ensure_trace_id(scope: dict) -> str:
    """Get or set trace_id on ASGI scope. Returns the same trace_id for the request lifecycle."""
    tid = scope.get(SCOPE_KEY)
    if tid and isinstance(tid, str):
        return tid
    tid = str(uuid.uuid4())[:16]
    scope[SCOPE_KEY] = tid
    return tid


class TraceIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        trace_id = ensure_trace_id(request.scope)
        request.state.trace_id = trace_id
        response = await call_next(request)
        response.headers[HEADER] = trace_id
        return response
