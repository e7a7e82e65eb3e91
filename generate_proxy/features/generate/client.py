# generate_proxy/features/generate/client.py
import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from generate_proxy.shared.config import OpenAIConfig, logger
from generate_proxy.shared.errors import UpstreamTimeoutError, UpstreamTransportError
from generate_proxy.shared.metrics import UPSTREAM_ERRORS, UPSTREAM_LATENCY
from generate_proxy.shared.utils import mask_key


@dataclass(frozen=True)
class UpstreamResponse:
    status_code: int
    text: str

    @property
    def ok(self) -> bool:
        return self.status_code < 400


class OpenAIClient:
    """Sends a single chat-completion request to OpenAI. No retries."""

    def __init__(self, http_client: httpx.AsyncClient, openai_config: OpenAIConfig):
        self._client = http_client
        self._config = openai_config

    @property
    def endpoint(self) -> str:
        return f"{self._config.base_url.rstrip('/')}/chat/completions"

    async def create_chat_completion(
        self, payload: Dict[str, Any], timeout: Optional[float] = None
    ) -> UpstreamResponse:
        """
        Posts the payload and returns the raw upstream status and body text.

        The whole exchange, body included, is bounded by ``timeout`` seconds
        (the configured OpenAI timeout by default); when it expires the
        in-flight request is cancelled.

        Raises:
            UpstreamTimeoutError: the upstream did not answer in time.
            UpstreamTransportError: the upstream could not be reached.
        """
        timeout = self._config.timeout if timeout is None else timeout
        api_key = self._config.api_key
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "User-Agent": self._config.user_agent,
        }

        logger.info(
            "Calling %s with key %s for model '%s' (%d messages).",
            self.endpoint, mask_key(api_key), payload.get("model"), len(payload.get("messages") or []),
        )

        started = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self._client.post(self.endpoint, json=payload, headers=headers),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            UPSTREAM_ERRORS.labels(kind="timeout").inc()
            logger.error("OpenAI request timed out after %.1f seconds: %r", timeout, e)
            raise UpstreamTimeoutError("Request timeout: OpenAI API took too long to respond") from e
        except httpx.RequestError as e:
            UPSTREAM_ERRORS.labels(kind="network").inc()
            logger.error("Request error calling OpenAI: %s", e)
            raise UpstreamTransportError(
                "Network error: Unable to reach OpenAI API",
                details=str(e) or type(e).__name__,
            ) from e
        finally:
            UPSTREAM_LATENCY.observe(time.perf_counter() - started)

        logger.info("OpenAI response status: %d, length: %d", response.status_code, len(response.text))
        return UpstreamResponse(status_code=response.status_code, text=response.text)
