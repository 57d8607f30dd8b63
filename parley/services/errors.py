"""
PROVIDER ERRORS
===============

Normalized failure kinds for the chat providers. Each client translates its own
SDK exceptions into a ProviderError carrying one ErrorKind, so the orchestrator
and the HTTP layer never look at provider-specific response shapes.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    QUOTA_EXCEEDED = "quota_exceeded"
    UNAUTHORIZED = "unauthorized"
    NETWORK_UNREACHABLE = "network_unreachable"
    INVALID_RESPONSE = "invalid_response"
    UNKNOWN = "unknown"


# User-facing text for each kind; main.py puts these in the HTTP error detail.
USER_MESSAGES = {
    ErrorKind.RATE_LIMITED: "Rate limit exceeded. Please try again later.",
    ErrorKind.QUOTA_EXCEEDED: (
        "AI provider quota exceeded. The account may need a valid payment method "
        "or has reached its limit."
    ),
    ErrorKind.UNAUTHORIZED: "API key is invalid or expired.",
    ErrorKind.NETWORK_UNREACHABLE: (
        "No response received from AI service. Please check your internet connection."
    ),
    ErrorKind.INVALID_RESPONSE: "The AI service returned an empty or malformed response.",
    ErrorKind.UNKNOWN: "The AI service failed to generate a response.",
}


class ProviderError(Exception):
    """A chat provider call failed; kind says why."""

    def __init__(self, kind: ErrorKind, provider: str, message: Optional[str] = None):
        self.kind = kind
        self.provider = provider
        self.message = message or USER_MESSAGES[kind]
        super().__init__(f"{provider}: {kind.value}: {self.message}")

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind]


class ProvidersUnavailableError(Exception):
    """Neither chat provider is usable; raised before any network call."""

    def __init__(self, message: str = "All AI models are currently unavailable. Please check your API keys."):
        self.message = message
        super().__init__(message)
