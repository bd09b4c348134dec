"""Response error extraction for load test observability.

Parses Ordering API error envelopes into human-readable messages:

- {"success": false, "error": "Insufficient Stock", "message": "...", "details": ...}
- anything else is stringified and truncated
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from requests import Response


def extract_error_detail(response: Response) -> str:
    """Extract a human-readable error message from an API error response."""
    try:
        body = response.json()
    except ValueError:
        text = getattr(response, "text", "") or ""
        return text[:300] or "(empty response body)"

    if isinstance(body, dict) and body.get("success") is False:
        error = body.get("error") or "Error"
        message = body.get("message") or ""
        details = body.get("details")
        if isinstance(details, list) and details:
            fields = ", ".join(str(d.get("field") or d.get("product_id")) for d in details if isinstance(d, dict))
            return f"{error}: {message} [{fields}]"
        return f"{error}: {message}"

    return str(body)[:300]
