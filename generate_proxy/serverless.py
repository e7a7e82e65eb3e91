"""Serverless entrypoint (Netlify Functions / AWS Lambda proxy integration).

Expected event shape:
   {"httpMethod": "POST", "headers": {...}, "body": "{\"prompt\": \"hi\"}", "isBase64Encoded": false}

Return:
   {"statusCode": <int>, "headers": {...}, "body": <JSON text, "" for preflight>}

The same GenerateHandler serves the ASGI app, so both deployments behave identically.
"""

import asyncio
import base64
import binascii
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional

import httpx

from generate_proxy.features.generate.client import OpenAIClient
from generate_proxy.features.generate.handler import GenerateHandler, HandlerResponse
from generate_proxy.shared.config import Settings, load_config, logger, setup_logging


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = load_config()
    setup_logging(settings)
    return settings


def _event_body(event: Mapping[str, Any]) -> Optional[str]:
    body = event.get("body")
    if body and event.get("isBase64Encoded"):
        try:
            return base64.b64decode(body, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            # Left as-is so the handler reports it as an invalid JSON body
            logger.warning("Could not decode base64 event body: %s", e)
    return body


def _event_method(event: Mapping[str, Any]) -> str:
    # API Gateway HTTP APIs (payload v2) nest the method under requestContext.http
    method = event.get("httpMethod")
    if not method:
        method = ((event.get("requestContext") or {}).get("http") or {}).get("method", "")
    return method


async def handle_event(
    event: Mapping[str, Any],
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> HandlerResponse:
    settings = settings or get_settings()
    body = _event_body(event)
    async with httpx.AsyncClient(timeout=settings.openai.timeout + 5.0, transport=transport) as http_client:
        handler = GenerateHandler(settings, OpenAIClient(http_client, settings.openai))
        return await handler.handle(_event_method(event), body)


def handler(event: Mapping[str, Any], context: Any = None) -> Dict[str, Any]:
    result = asyncio.run(handle_event(event))
    return {
        "statusCode": result.status_code,
        "headers": result.headers,
        "body": result.body_text(),
    }
