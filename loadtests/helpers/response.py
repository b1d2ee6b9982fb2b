"""Response error extraction for load test observability.

The ordering API answers every failure with ``{"success": false, "error": "msg"}``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from requests import Response


def extract_error_detail(response: Response) -> str:
    """Extract a human-readable error message from an API error response."""
    try:
        body = response.json()
    except Exception:
        # Not JSON, return raw text truncated
        text = getattr(response, "text", "") or ""
        return text[:300] or "(empty response body)"

    if isinstance(body, dict) and "error" in body:
        return str(body["error"])

    # Unknown shape, stringify and truncate
    return str(body)[:300]


def is_stock_rejection(response: Response) -> bool:
    """True for the expected 400 answered when stock runs out under contention."""
    return response.status_code == 400 and "Stock insuficiente" in extract_error_detail(response)
