"""
OPENAI SERVICE MODULE (PRIMARY CHAT PROVIDER)
=============================================

Calls OpenAI through LangChain's ChatOpenAI. The transcript is converted into
LangChain messages behind the composed system message, sent once (no retries,
the orchestrator decides what happens on failure), and the reply text returned.

Failures are translated into ProviderError with a normalized ErrorKind so the
orchestrator never needs to know what an OpenAI error looks like.

Also generates short conversation titles with a cheaper model (best effort).
"""

import asyncio
import logging
from typing import Callable, List, Optional, Sequence

import openai
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from config import (
    OPENAI_API_KEY,
    OPENAI_MAX_TOKENS,
    OPENAI_MODEL,
    OPENAI_TITLE_MODEL,
    PROVIDER_TIMEOUT_SECONDS,
)
from parley.models import ChatMessage
from parley.services.availability import is_primary_available, mask_key
from parley.services.errors import ErrorKind, ProviderError

logger = logging.getLogger("Parley")

TITLE_SYSTEM_PROMPT = (
    "You are a title generator. Create a concise, descriptive title (2-4 words) "
    "that summarizes the following message. Respond with just the title."
)


def classify_openai_error(exc: BaseException) -> ErrorKind:
    """Map an exception raised while calling OpenAI to an ErrorKind."""
    if isinstance(exc, asyncio.TimeoutError):
        return ErrorKind.NETWORK_UNREACHABLE
    if isinstance(exc, openai.RateLimitError):
        if getattr(exc, "code", None) == "insufficient_quota":
            return ErrorKind.QUOTA_EXCEEDED
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ErrorKind.UNAUTHORIZED
    # APITimeoutError is a subclass of APIConnectionError.
    if isinstance(exc, openai.APIConnectionError):
        return ErrorKind.NETWORK_UNREACHABLE
    return ErrorKind.UNKNOWN


def to_langchain_messages(system_message: str, transcript: Sequence[ChatMessage]) -> List[BaseMessage]:
    messages: List[BaseMessage] = [SystemMessage(content=system_message)]
    for turn in transcript:
        if turn.role == "user":
            messages.append(HumanMessage(content=turn.content))
        elif turn.role == "assistant":
            messages.append(AIMessage(content=turn.content))
        else:
            messages.append(SystemMessage(content=turn.content))
    return messages


def _message_text(message: BaseMessage) -> str:
    content = message.content
    if isinstance(content, str):
        return content
    # Content blocks: keep the text parts only.
    parts = [block.get("text", "") if isinstance(block, dict) else str(block) for block in content]
    return "".join(parts)


class OpenAIChatClient:
    """Primary chat client. One instance per server process."""

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = OPENAI_MODEL,
        max_tokens: int = OPENAI_MAX_TOKENS,
        timeout: float = PROVIDER_TIMEOUT_SECONDS,
        llm_factory: Optional[Callable[..., BaseChatModel]] = None,
    ):
        self.api_key = OPENAI_API_KEY if api_key is None else api_key
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._llm_factory = llm_factory or ChatOpenAI

    def is_available(self) -> bool:
        return is_primary_available(self.api_key)

    def _build_llm(self, model: str, temperature: float, max_tokens: int) -> BaseChatModel:
        # max_retries=0: a failed call goes straight to the fallback provider.
        return self._llm_factory(
            api_key=self.api_key,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=self.timeout,
            max_retries=0,
        )

    async def generate(
        self,
        transcript: Sequence[ChatMessage],
        system_message: str,
        temperature: float = 0.7,
    ) -> str:
        """Return the model's reply, or raise ProviderError."""
        messages = to_langchain_messages(system_message, transcript)
        logger.info(
            "Calling OpenAI model %s with %d messages (key %s)",
            self.model,
            len(messages),
            mask_key(self.api_key),
        )
        try:
            llm = self._build_llm(self.model, temperature, self.max_tokens)
            response = await asyncio.wait_for(llm.ainvoke(messages), timeout=self.timeout)
        except Exception as e:
            kind = classify_openai_error(e)
            logger.warning("OpenAI call failed (%s): %s", kind.value, e)
            raise ProviderError(kind, self.name, str(e) or None) from e

        text = _message_text(response).strip()
        if not text:
            raise ProviderError(ErrorKind.INVALID_RESPONSE, self.name, "OpenAI returned an empty response")
        return text

    async def generate_title(self, prompt: str, instructions: str = TITLE_SYSTEM_PROMPT) -> Optional[str]:
        """Ask the title model for a short title. Any failure returns None."""
        if not self.is_available():
            return None
        try:
            llm = self._build_llm(OPENAI_TITLE_MODEL, 0.6, 20)
            response = await asyncio.wait_for(
                llm.ainvoke([SystemMessage(content=instructions), HumanMessage(content=prompt)]),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning("Error generating AI title: %s", e)
            return None
        title = _message_text(response).strip().strip('"').strip()
        return title or None
