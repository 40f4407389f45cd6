"""
OpenAI client wrapper.

The client is built lazily on first use and shared by all threads (the SDK
client is thread-safe). Returns None when no API key is configured so callers
can degrade instead of failing at import time.
"""
import logging

from openai import OpenAI

from riskguard.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

_client: OpenAI | None = None


def get_client() -> OpenAI | None:
    global _client
    if not settings.openai_api_key:
        return None
    if _client is None:
        _client = OpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url or None,
        )
        logger.info("OpenAI client ready (model=%s)", settings.openai_model)
    return _client


def reset_client() -> None:
    """Drop the cached client (after a key/model change)."""
    global _client
    _client = None
