#!/usr/bin/env python3
"""
Dependency provider functions for the application.
"""

from fastapi import Request
import httpx

from generate_proxy.shared.config import Settings

def get_http_client(request: Request) -> httpx.AsyncClient:
    """Returns the shared httpx.AsyncClient instance."""
    return request.app.state.http_client

def get_settings(request: Request) -> Settings:
    """Returns the immutable settings the application was built with."""
    return request.app.state.settings
