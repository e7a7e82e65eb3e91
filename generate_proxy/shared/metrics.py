#!/usr/bin/env python3
"""
Metrics definitions for the Generate Proxy.
"""

import prometheus_client

GENERATE_REQUESTS = prometheus_client.Counter(
    'generate_requests_total', 'Generate requests handled, by response status', ['status']
)
UPSTREAM_ERRORS = prometheus_client.Counter(
    'generate_upstream_errors_total', 'Failed upstream chat-completion calls, by kind', ['kind']
)
UPSTREAM_LATENCY = prometheus_client.Histogram(
    'generate_upstream_latency_seconds', 'Time spent waiting for the upstream chat-completion API'
)
TOKENS_SENT = prometheus_client.Counter('generate_tokens_sent_total', 'Prompt tokens reported by the upstream API')
TOKENS_RECEIVED = prometheus_client.Counter(
    'generate_tokens_received_total', 'Completion tokens reported by the upstream API'
)
