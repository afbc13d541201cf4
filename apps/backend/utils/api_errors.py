"""Unified API error envelope."""
from __future__ import annotations


def error_envelope(
    *,
    code: str,
    message: str,
    trace_id: str,
    detail: str | None = None,
) -> dict:
    out = {
        "success": False,
        "error": message,
        "code": code,
        "trace_id": trace_id,
    }
    if detail:
        out["detail"] = detail
    return out
