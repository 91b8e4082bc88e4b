"""OpenAI client utilities with httpx>=0.28 compatibility."""
from __future__ import annotations

import httpx
from openai import OpenAI

from diagram_ai.utils.config import settings


def build_httpx_client() -> httpx.Client:
    """Create an httpx client without deprecated proxy kwargs."""
    timeout = settings.request_timeout
    return httpx.Client(
        timeout=httpx.Timeout(timeout, connect=10.0),
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        follow_redirects=True,
    )


def create_openai_client(http_client: httpx.Client) -> OpenAI:
    """Return an OpenAI client that sends through ``http_client``.

    Retries are disabled: a failed call is reported to the caller as-is.
    """
    if not settings.openai_api_key:
        raise ValueError("OPENAI_API_KEY is not set")
    return OpenAI(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        http_client=http_client,
        max_retries=0,
    )
