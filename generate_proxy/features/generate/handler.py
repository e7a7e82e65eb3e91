# generate_proxy/features/generate/handler.py
import errno
import json
import socket
import traceback
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from generate_proxy.shared.config import Settings, logger
from generate_proxy.shared.errors import (
    ClientInputError,
    MethodNotAllowedError,
    ProxyError,
    ServerConfigurationError,
    UpstreamApplicationError,
    UpstreamProtocolError,
)
from generate_proxy.shared.metrics import GENERATE_REQUESTS, TOKENS_RECEIVED, TOKENS_SENT
from generate_proxy.shared.utils import CORS_HEADERS, response_headers, utc_timestamp

from .client import OpenAIClient, UpstreamResponse
from .command import GenerateRequest, UpstreamPayload

PREVIEW_LENGTH = 200
LOG_PREVIEW_LENGTH = 500


@dataclass
class HandlerResponse:
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Dict[str, Any]] = None

    def body_text(self) -> str:
        return "" if self.body is None else json.dumps(self.body, ensure_ascii=False)


class GenerateHandler:
    """
    Forwards one generate request to the OpenAI chat-completion API.

    ``handle`` never raises: every failure is turned into a JSON error
    response carrying the CORS headers.
    """

    def __init__(self, settings: Settings, client: OpenAIClient):
        self._settings = settings
        self._client = client

    async def handle(self, method: str, body: Union[str, bytes, None]) -> HandlerResponse:
        method = (method or "").upper()
        if method == "OPTIONS":
            return self._record(HandlerResponse(status_code=204, headers=dict(CORS_HEADERS)))

        try:
            response = await self._forward(method, body)
        except ProxyError as e:
            response = HandlerResponse(
                status_code=e.status_code,
                headers=response_headers(**e.headers),
                body=e.to_body(),
            )
        except Exception as e:
            logger.exception("Generate handler failed: %s", e)
            response = self._unexpected_error_response(e)
        return self._record(response)

    async def _forward(self, method: str, body: Union[str, bytes, None]) -> HandlerResponse:
        if method != "POST":
            raise MethodNotAllowedError(method)

        request = GenerateRequest.from_payload(self._parse_body(body))

        api_key = self._settings.openai.api_key
        if not api_key:
            logger.error("OPENAI_API_KEY environment variable not set")
            raise ServerConfigurationError(
                "Server configuration error: OpenAI API key not configured. Please contact support.",
                timestamp=utc_timestamp(),
            )

        payload = UpstreamPayload.build(request, self._settings)
        logger.info(
            "Processing generate request for model '%s' with %d messages",
            payload.model, len(request.messages or []),
        )

        upstream = await self._client.create_chat_completion(payload.model_dump())
        data = self._translate(upstream)

        self._count_tokens(data)
        logger.info("OpenAI request successful, returning content")
        return HandlerResponse(
            status_code=200,
            headers=response_headers(),
            body={
                **data,
                "meta": {
                    "timestamp": utc_timestamp(),
                    "model": payload.model,
                    "function_version": self._settings.function_version,
                },
            },
        )

    @staticmethod
    def _parse_body(body: Union[str, bytes, None]) -> Dict[str, Any]:
        if not body:
            return {}
        try:
            data = json.loads(body)
        except ValueError as e:
            logger.warning("JSON parse error: %s", e)
            raise ClientInputError("Invalid JSON in request body", details=str(e)) from e
        if not isinstance(data, dict):
            raise ClientInputError(
                "Invalid JSON in request body",
                details=f"Expected a JSON object, got {type(data).__name__}",
            )
        return data

    @staticmethod
    def _translate(upstream: UpstreamResponse) -> Dict[str, Any]:
        """Validates the upstream answer and returns its decoded JSON on success."""
        try:
            data = json.loads(upstream.text)
        except ValueError as e:
            logger.error("Failed to parse OpenAI response as JSON: %s", e)
            logger.error("Response text: %s", upstream.text[:LOG_PREVIEW_LENGTH])
            raise UpstreamProtocolError(
                "Invalid response format from OpenAI API",
                details="Response was not valid JSON",
                preview=upstream.text[:PREVIEW_LENGTH],
            ) from e

        if not upstream.ok:
            logger.error("OpenAI API error (%d): %s", upstream.status_code, data)
            error = data.get("error") if isinstance(data, dict) else None
            if not isinstance(error, dict):
                error = {}
            raise UpstreamApplicationError(
                error.get("message") or "OpenAI API request failed",
                upstream.status_code,
                type=error.get("type") or "api_error",
                code=error.get("code") or "unknown",
                details=data,
            )

        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices:
            logger.error("Invalid OpenAI response structure: %s", data)
            raise UpstreamProtocolError(
                "Invalid response structure from OpenAI API",
                structure=list(data.keys()) if isinstance(data, dict) else [],
            )
        return data

    def _unexpected_error_response(self, error: Exception) -> HandlerResponse:
        status_code, message = classify_exception(error)
        body = {"error": message, "timestamp": utc_timestamp()}
        if self._settings.server.debug:
            body["stack"] = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return HandlerResponse(status_code=status_code, headers=response_headers(), body=body)

    @staticmethod
    def _count_tokens(data: Dict[str, Any]) -> None:
        usage = data.get("usage")
        if not isinstance(usage, dict):
            return
        for counter, key in ((TOKENS_SENT, "prompt_tokens"), (TOKENS_RECEIVED, "completion_tokens")):
            value = usage.get(key)
            if isinstance(value, int) and value > 0:
                counter.inc(value)

    @staticmethod
    def _record(response: HandlerResponse) -> HandlerResponse:
        GENERATE_REQUESTS.labels(status=str(response.status_code)).inc()
        return response


def classify_exception(error: BaseException) -> tuple[int, str]:
    """Maps an unexpected exception (or its cause) to a status code and message."""
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, socket.gaierror):
            return 502, "DNS error: Unable to resolve OpenAI API hostname"
        if isinstance(current, ConnectionResetError):
            return 502, "Connection reset: Request to OpenAI API was interrupted"
        if isinstance(current, TimeoutError) or getattr(current, "errno", None) == errno.ETIMEDOUT:
            return 408, "Timeout: OpenAI API took too long to respond"
        if isinstance(current, ConnectionError):
            return 502, "Network error: Failed to connect to OpenAI API"
        current = current.__cause__ or current.__context__

    return 500, str(error) or "Unknown server error"
