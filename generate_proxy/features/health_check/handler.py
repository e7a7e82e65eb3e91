import httpx
from fastapi import Depends
from generate_proxy.shared.config import Settings, logger
from generate_proxy.shared.dependencies import get_http_client, get_settings
from .query import HealthCheckResponse

PROBE_TIMEOUT = 5.0

class HealthCheckHandler:
    def __init__(
        self,
        http_client: httpx.AsyncClient = Depends(get_http_client),
        settings: Settings = Depends(get_settings),
    ):
        self._http_client = http_client
        self._settings = settings

    async def handle(self) -> HealthCheckResponse:
        services_status = {}

        # Any answer below 500 (401 without a key included) means OpenAI is reachable
        try:
            probe = await self._http_client.head(
                f"{self._settings.openai.base_url.rstrip('/')}/models",
                timeout=PROBE_TIMEOUT,
            )
            services_status["openai_api"] = "up" if probe.status_code < 500 else "down"
        except httpx.HTTPError as e:
            logger.error("OpenAI API health check failed: %s", str(e))
            services_status["openai_api"] = "down"

        overall_status = "ok" if all(s == "up" for s in services_status.values()) else "error"
        return HealthCheckResponse(
            status=overall_status,
            services=services_status,
            api_key_configured=self._settings.has_api_key,
        )
