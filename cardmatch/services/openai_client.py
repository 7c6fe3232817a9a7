"""
OpenAI client construction and error translation shared by the LLM and
embedding adapters.
"""

import logging
from typing import Optional

from openai import (
    APIError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    PermissionDeniedError,
)

from cardmatch.config import OPENAI_API_KEY, LLMConfig
from cardmatch.errors import (
    ProviderTimeoutError,
    ProviderUnauthorizedError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)


def build_async_client(api_key: Optional[str] = OPENAI_API_KEY) -> Optional[AsyncOpenAI]:
    """Return an AsyncOpenAI client, or None when no API key is configured."""
    if not api_key:
        logger.warning(
            "OPENAI_API_KEY not set. Semantic and LLM categorization tiers are disabled; "
            "only keyword matching is available."
        )
        return None

    client = AsyncOpenAI(
        api_key=api_key,
        timeout=float(LLMConfig.TIMEOUT_SECONDS),
        max_retries=LLMConfig.MAX_RETRIES,
    )
    logger.info(f"OpenAI client initialized with model: {LLMConfig.MODEL}")
    return client


def translate_openai_error(exc: Exception, provider: str) -> ProviderUnavailableError:
    """Map an OpenAI SDK exception to the matching provider error kind."""
    details = {"provider": provider, "error_type": type(exc).__name__}
    if isinstance(exc, APITimeoutError):
        return ProviderTimeoutError(f"{provider} request timed out", details)
    if isinstance(exc, (AuthenticationError, PermissionDeniedError)):
        return ProviderUnauthorizedError(f"{provider} rejected the API key", details)
    if isinstance(exc, APIError):
        return ProviderUnavailableError(f"{provider} API error: {exc}", details)
    return ProviderUnavailableError(f"{provider} network error: {exc}", details)
