from datetime import datetime, timezone
from typing import Dict

CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}

JSON_CONTENT_TYPE = "application/json"


def mask_key(key: str | None) -> str:
    """Masks an API key for logging, keeping only its edges."""
    if not key:
        return "<none>"
    if len(key) <= 8:
        return "****"
    return f"{key[:4]}...{key[-4:]}"


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-05-01T12:00:00.000Z"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def response_headers(**extra: str) -> Dict[str, str]:
    headers = dict(CORS_HEADERS)
    headers["Content-Type"] = JSON_CONTENT_TYPE
    headers.update(extra)
    return headers
