from fastapi.responses import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

# Importing registers the collectors before the first scrape
from generate_proxy.shared import metrics  # noqa: F401


class MetricsHandler:
    """Serves the process metrics in Prometheus text format."""

    def get_raw_metrics(self) -> Response:
        return Response(
            content=generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )
