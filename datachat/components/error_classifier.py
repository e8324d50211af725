"""Categorized error classification for OpenAI / LLM API failures.

``classify_llm_error`` inspects an exception raised by the chat model and
returns a short machine-readable category plus a message fit for a
notification.  A 429 is split into quota vs. rate limit, since the former
is a billing problem the user has to fix.
"""

from typing import Tuple

QUOTA_MESSAGE = "OpenAI quota/billing exceeded. Add credits to the account or use another key."
RATE_LIMIT_MESSAGE = "OpenAI rate limited. Too many requests, wait a moment and try again."


def classify_llm_error(exc: BaseException) -> Tuple[str, str]:
    """Classify an LLM-related exception into a category and message.

    Returns
    -------
    (category, user_message) where *category* is one of:
        "quota_exceeded", "rate_limited", "invalid_api_key",
        "model_not_found", "timeout", "network_error", "unknown"
    """
    error_str = str(exc).lower()
    error_type = type(exc).__name__.lower()

    http_status = getattr(exc, "status_code", None) or getattr(exc, "http_status", None)
    error_code = str(getattr(exc, "code", "") or "").lower()

    if http_status == 429 or "429" in error_str:
        if "rate_limit" in error_code or "rate_limit_exceeded" in error_str:
            return "rate_limited", RATE_LIMIT_MESSAGE
        # insufficient_quota, or an ambiguous 429
        return "quota_exceeded", QUOTA_MESSAGE

    if (
        http_status == 401
        or "401" in error_str
        or "authentication" in error_str
        or "invalid api key" in error_str
        or "invalid_api_key" in error_str
    ):
        return "invalid_api_key", "OpenAI API key is missing, invalid or revoked. Check OPENAI_API_KEY."

    if http_status == 404 or "model_not_found" in error_str or ("404" in error_str and "model" in error_str):
        return "model_not_found", "Model not found. Check OPENAI_MODEL."

    if "timeout" in error_type or "timeout" in error_str or "timed out" in error_str:
        return "timeout", "Request timed out. Try again or increase OPENAI_TIMEOUT."

    network_words = ("connection", "network", "dns", "ssl")
    if any(kw in error_type for kw in network_words) or any(
        kw in error_str for kw in network_words + ("unreachable",)
    ):
        return "network_error", "Cannot reach the OpenAI API. Check network connectivity."

    return "unknown", f"Unexpected error from the language model: {str(exc)[:200]}"
