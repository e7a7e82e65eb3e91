#!/usr/bin/env python3
"""
Generate Proxy
Proxies content generation requests to the OpenAI chat-completion API
without exposing the API key to browsers.
"""

import uvicorn

from generate_proxy.app import create_app
from generate_proxy.shared.config import load_config, setup_logging

settings = load_config()
app = create_app(settings)

if __name__ == "__main__":
    logger = setup_logging(settings)
    host = settings.server.host
    port = settings.server.port

    logger.warning("Starting Generate Proxy on %s:%s", host, port)
    logger.warning("Generate URL: http://%s:%s/api/v1/generate", host, port)
    logger.warning("Metrics: http://%s:%s/metrics", host, port)

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["loggers"]["uvicorn.access"]["level"] = settings.server.http_log_level.upper()

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_config=log_config,
        timeout_graceful_shutdown=30,
        server_header=False
    )
