"""LLM client configuration for the MCP chat client.

This module defines the OpenAI-compatible client used for chat completions.
By default it targets the DashScope compatible-mode endpoint, but the
environment variables documented in ``.env.example`` let you point to any
OpenAI-compatible service.
"""

import os

from openai import OpenAI

from .config import BASE_URL


def create_llm_client() -> OpenAI:
    """Create an OpenAI-compatible client configured via environment variables.

    A missing ``API_KEY`` is not rejected here; the endpoint reports it as an
    authentication error on the first request.
    """

    return OpenAI(
        base_url=BASE_URL,
        api_key=os.getenv("API_KEY", ""),
    )
