#!/usr/bin/env python3
"""
Smoke test script for a running Generate Proxy.
Exercises every endpoint using the server settings from config.yml.
"""

import asyncio
import os
from typing import Dict, Any

import httpx
import yaml

PROMPT = "Say hello in one short sentence."

def load_config() -> Dict[str, Any]:
    """Load configuration from config.yml, if there is one"""
    try:
        with open(os.environ.get("GENERATE_PROXY_CONFIG", "config.yml"), encoding="utf-8") as file:
            return yaml.safe_load(file) or {}
    except FileNotFoundError:
        return {}

async def test_feature(feature_name: str, test_func: callable):
    """Run a feature test with formatted output"""
    print(f"\n=== Testing {feature_name} ===")
    try:
        await test_func()
        print(f"✅ {feature_name} test passed")
    except Exception as e:
        print(f"❌ {feature_name} test failed: {str(e)}")
        raise

async def test_health(client: httpx.AsyncClient, root_url: str):
    resp = await client.get(f"{root_url}/health")
    resp.raise_for_status()
    data = resp.json()
    print(f"OpenAI API: {data['services'].get('openai_api')}, key configured: {data['api_key_configured']}")

async def test_preflight(client: httpx.AsyncClient, base_url: str):
    resp = await client.options(f"{base_url}/generate")
    assert resp.status_code == 204, f"Expected 204, got {resp.status_code}"
    assert resp.headers.get("access-control-allow-origin") == "*"

async def test_generate(client: httpx.AsyncClient, base_url: str):
    resp = await client.post(f"{base_url}/generate", json={"prompt": PROMPT, "max_tokens": 50})
    resp.raise_for_status()
    data = resp.json()
    assert data["choices"], "Expected at least one choice"
    print(f"Model {data['meta']['model']} said: {data['choices'][0]['message']['content']}")

async def test_metrics(client: httpx.AsyncClient, root_url: str):
    resp = await client.get(f"{root_url}/metrics")
    resp.raise_for_status()
    assert "generate_requests_total" in resp.text

async def run_tests():
    """Run all feature tests"""
    server_config = load_config().get("server") or {}
    host = server_config.get("host", "127.0.0.1")
    host = "127.0.0.1" if host == "0.0.0.0" else host
    port = server_config.get("port", 5555)
    root_url = f"http://{host}:{port}"
    base_url = f"{root_url}/api/v1"

    async with httpx.AsyncClient(timeout=60.0) as client:
        await test_feature("Health", lambda: test_health(client, root_url))
        await test_feature("Preflight", lambda: test_preflight(client, base_url))
        await test_feature("Generate", lambda: test_generate(client, base_url))
        await test_feature("Metrics", lambda: test_metrics(client, root_url))

if __name__ == "__main__":
    print("Running Generate Proxy smoke tests")
    asyncio.run(run_tests())
