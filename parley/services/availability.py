"""
PROVIDER AVAILABILITY
=====================

Cheap local checks on the configured credentials. No network I/O: a provider
that passes here can still fail at call time, and the orchestrator handles that.
"""

from typing import Optional

OPENAI_KEY_PREFIX = "sk-"
OPENAI_KEY_MIN_LENGTH = 21


def is_primary_available(api_key: Optional[str]) -> bool:
    """OpenAI key is present, starts with sk- and is longer than 20 characters."""
    key = (api_key or "").strip()
    return key.startswith(OPENAI_KEY_PREFIX) and len(key) >= OPENAI_KEY_MIN_LENGTH


def is_fallback_available(api_key: Optional[str]) -> bool:
    return bool((api_key or "").strip())


def mask_key(api_key: Optional[str]) -> str:
    """Show only the first and last 4 characters, for log lines."""
    key = (api_key or "").strip()
    if len(key) <= 8:
        return "***" if key else "(none)"
    return f"{key[:4]}...{key[-4:]}"
