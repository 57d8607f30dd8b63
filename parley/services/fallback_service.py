"""
FALLBACK CHAT SERVICE MODULE
============================

Secondary chat provider, used when OpenAI is unusable or fails: Qwen served by
Novita through Hugging Face Inference (huggingface_hub.AsyncInferenceClient).

Differences from the primary client:
  - The outbound transcript always ends with a user turn (Qwen rejects anything
    else); system turns from the input are dropped since we send our own.
  - Qwen is a reasoning model: <think>...</think> sections and any other tags are
    stripped from the reply, and long runs of blank lines are collapsed.
  - Every reply carries a short note saying we are in fallback mode.
"""

import asyncio
import logging
import re
from typing import Callable, Dict, List, Optional, Sequence

import httpx
from huggingface_hub import AsyncInferenceClient
from huggingface_hub.errors import HfHubHTTPError

from config import (
    FALLBACK_MAX_TOKENS,
    FALLBACK_MODEL,
    FALLBACK_PROVIDER,
    NOVITA_API_KEY,
    PROVIDER_TIMEOUT_SECONDS,
)
from parley.models import ChatMessage
from parley.services.availability import is_fallback_available, mask_key
from parley.services.errors import ErrorKind, ProviderError

logger = logging.getLogger("Parley")

INTRODUCTION_PROMPT = "Hello, can you introduce yourself?"
CONTINUATION_PROMPT = "Can you help me with this?"
EMPTY_REPLY = "I'm sorry, I couldn't generate a proper response."
FALLBACK_DISCLAIMER = (
    "(Note: I'm currently operating in fallback mode using the Qwen model "
    "because the OpenAI API is unavailable)"
)

_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
# A reply cut off by max_tokens can end inside an unclosed reasoning section.
_OPEN_THINK_BLOCK = re.compile(r"<think>.*\Z", re.DOTALL | re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]*>")
_EXTRA_NEWLINES = re.compile(r"\n{3,}")


def prepare_transcript(system_message: str, transcript: Sequence[ChatMessage]) -> List[Dict[str, str]]:
    """
    Build the outbound message list: our system message, then the non-system turns,
    guaranteed to end with a user turn.
    """
    messages = [{"role": "system", "content": system_message}]
    turns = [{"role": m.role, "content": m.content} for m in transcript if m.role != "system"]

    if not turns:
        messages.append({"role": "user", "content": INTRODUCTION_PROMPT})
        return messages

    if turns[-1]["role"] != "user":
        turns.append({"role": "user", "content": CONTINUATION_PROMPT})

    messages.extend(turns)
    return messages


def clean_output(text: Optional[str]) -> str:
    """Remove reasoning sections and markup, tidy whitespace."""
    content = _THINK_BLOCK.sub("", text or "")
    content = _OPEN_THINK_BLOCK.sub("", content)
    content = _ANY_TAG.sub("", content)
    content = content.strip()
    content = _EXTRA_NEWLINES.sub("\n\n", content)
    return content or EMPTY_REPLY


def with_disclaimer(text: str) -> str:
    return f"{text}\n\n{FALLBACK_DISCLAIMER}"


def classify_inference_error(exc: BaseException) -> ErrorKind:
    """Map an exception raised by the inference client to an ErrorKind."""
    if isinstance(exc, asyncio.TimeoutError):
        return ErrorKind.NETWORK_UNREACHABLE
    if isinstance(exc, (HfHubHTTPError, httpx.HTTPStatusError)):
        status = exc.response.status_code if exc.response is not None else None
        message = str(exc).lower()
        if status in (401, 403):
            return ErrorKind.UNAUTHORIZED
        if status == 402 or "quota" in message or "insufficient" in message:
            return ErrorKind.QUOTA_EXCEEDED
        if status == 429:
            return ErrorKind.RATE_LIMITED
        return ErrorKind.UNKNOWN
    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return ErrorKind.NETWORK_UNREACHABLE
    return ErrorKind.UNKNOWN


class FallbackChatClient:
    """Secondary chat client (Qwen via Novita)."""

    name = "qwen"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = FALLBACK_MODEL,
        provider: str = FALLBACK_PROVIDER,
        max_tokens: int = FALLBACK_MAX_TOKENS,
        timeout: float = PROVIDER_TIMEOUT_SECONDS,
        client_factory: Optional[Callable[..., AsyncInferenceClient]] = None,
    ):
        self.api_key = NOVITA_API_KEY if api_key is None else api_key
        self.model = model
        self.provider = provider
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client_factory = client_factory or AsyncInferenceClient

    def is_available(self) -> bool:
        return is_fallback_available(self.api_key)

    async def generate(
        self,
        transcript: Sequence[ChatMessage],
        system_message: str,
        temperature: float = 0.7,
    ) -> str:
        """
        Return the cleaned reply with the fallback note appended, or raise ProviderError.

        temperature is accepted for interface parity and passed through.
        """
        messages = prepare_transcript(system_message, transcript)
        logger.info(
            "Generating fallback response with %s via %s (%d messages, key %s)",
            self.model,
            self.provider,
            len(messages),
            mask_key(self.api_key),
        )
        client = self._client_factory(provider=self.provider, api_key=self.api_key, timeout=self.timeout)
        try:
            response = await asyncio.wait_for(
                client.chat_completion(
                    messages=messages,
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=temperature,
                ),
                timeout=self.timeout,
            )
        except Exception as e:
            kind = classify_inference_error(e)
            logger.warning("Fallback call failed (%s): %s", kind.value, e)
            raise ProviderError(kind, self.name, str(e) or None) from e
        finally:
            await client.close()

        choices = getattr(response, "choices", None) or []
        if not choices or choices[0].message is None:
            raise ProviderError(ErrorKind.INVALID_RESPONSE, self.name, "No valid response from Qwen model")

        return with_disclaimer(clean_output(choices[0].message.content))
