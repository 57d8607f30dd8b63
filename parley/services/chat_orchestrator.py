"""
CHAT ORCHESTRATOR MODULE
========================

Decides, per chat request, which provider answers:

    primary usable?  --yes-->  call primary  --ok-->  PRIMARY
         |                          |
         no                       fails
         v                          v
    fallback usable? --yes-->  call fallback --ok-->  FALLBACK (reply carries the fallback note)
         |                          |
         no                       fails --> apology text, status NONE (error kind logged)
         v
    nothing usable at entry --> ProvidersUnavailableError, no network call at all

Primary failure with no usable fallback re-raises the primary's ProviderError.
Availability is re-checked on every request; nothing is sticky. There is
exactly one hand-off (primary -> fallback) and no retries.

PROVIDER STATUS:
  ProviderStatusTracker is created once per server process and injected here.
  It holds an immutable ProviderStatus snapshot that is replaced wholesale, so
  concurrent requests simply race and the last writer wins; that is fine for
  a status indicator.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Protocol, Sequence

from config import MAX_CHAT_HISTORY_TURNS, STATUS_MAX_AGE_SECONDS
from parley.models import ActiveProvider, ChatMessage
from parley.services.errors import ErrorKind, ProviderError, ProvidersUnavailableError
from parley.services.personalities import get_personality
from parley.services.profile_extractor import extract_profile_facts
from parley.services.prompt_composer import compose_system_message

logger = logging.getLogger("Parley")

APOLOGY_MESSAGE = (
    "I apologize, but I'm currently experiencing technical difficulties with both "
    "primary and fallback AI services. Please try again later."
)


class ChatClient(Protocol):
    name: str

    def is_available(self) -> bool: ...

    async def generate(
        self, transcript: Sequence[ChatMessage], system_message: str, temperature: float = 0.7
    ) -> str: ...


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ==============================================================================
# PROVIDER STATUS
# ==============================================================================

@dataclass(frozen=True)
class ProviderStatus:
    active_provider: ActiveProvider
    primary_available: bool
    fallback_available: bool
    last_checked_at: datetime

    def to_dict(self) -> dict:
        return {
            "active_provider": self.active_provider.value,
            "primary_available": self.primary_available,
            "fallback_available": self.fallback_available,
            "last_checked_at": self.last_checked_at,
        }


def provider_for(primary_available: bool, fallback_available: bool) -> ActiveProvider:
    """Provider a request would start with, given current availability."""
    if primary_available:
        return ActiveProvider.PRIMARY
    if fallback_available:
        return ActiveProvider.FALLBACK
    return ActiveProvider.NONE


class ProviderStatusTracker:
    """
    Process-wide provider status. refresh() re-derives availability from the
    clients (local checks only); current() re-checks only when the snapshot is
    older than max_age, so two reads close together return the same snapshot.
    """

    def __init__(
        self,
        primary: ChatClient,
        fallback: ChatClient,
        max_age_seconds: float = STATUS_MAX_AGE_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.primary = primary
        self.fallback = fallback
        self.max_age = timedelta(seconds=max_age_seconds)
        self._clock = clock
        self._snapshot = self._check()

    def _check(self) -> ProviderStatus:
        primary_available = self.primary.is_available()
        fallback_available = self.fallback.is_available()
        return ProviderStatus(
            active_provider=provider_for(primary_available, fallback_available),
            primary_available=primary_available,
            fallback_available=fallback_available,
            last_checked_at=self._clock(),
        )

    @property
    def snapshot(self) -> ProviderStatus:
        return self._snapshot

    def refresh(self) -> ProviderStatus:
        snapshot = self._check()
        previous = self._snapshot
        self._snapshot = snapshot
        if previous.active_provider != snapshot.active_provider:
            logger.info(
                "Updated model status: %s (primary: %s, fallback: %s)",
                snapshot.active_provider.value,
                snapshot.primary_available,
                snapshot.fallback_available,
            )
        return snapshot

    def is_stale(self) -> bool:
        return self._clock() - self._snapshot.last_checked_at > self.max_age

    def current(self) -> ProviderStatus:
        if self.is_stale():
            return self.refresh()
        return self._snapshot

    def record(self, active_provider: ActiveProvider) -> ProviderStatus:
        """Record which provider the latest request ended up on."""
        snapshot = replace(self._snapshot, active_provider=active_provider)
        if snapshot.active_provider != self._snapshot.active_provider:
            logger.info("Switching active model to %s", active_provider.value)
        self._snapshot = snapshot
        return snapshot


# ==============================================================================
# ORCHESTRATOR
# ==============================================================================

@dataclass(frozen=True)
class ChatResult:
    text: str
    provider: ActiveProvider
    error_kind: Optional[ErrorKind] = None

    @property
    def is_fallback(self) -> bool:
        return self.provider != ActiveProvider.PRIMARY


def trim_history(transcript: Sequence[ChatMessage], max_turns: int = MAX_CHAT_HISTORY_TURNS) -> List[ChatMessage]:
    """Keep the last max_turns user+assistant pairs."""
    limit = max_turns * 2
    turns = list(transcript)
    return turns[-limit:] if len(turns) > limit else turns


class ChatOrchestrator:
    def __init__(self, primary: ChatClient, fallback: ChatClient, tracker: ProviderStatusTracker):
        self.primary = primary
        self.fallback = fallback
        self.tracker = tracker

    async def generate_reply(
        self,
        transcript: Sequence[ChatMessage],
        personality: str = "default",
        user_context: Optional[str] = None,
    ) -> ChatResult:
        """
        Produce the assistant's reply for a transcript.

        Raises ProvidersUnavailableError when nothing is usable at entry, and the
        primary's ProviderError when it fails with no usable fallback. A failing
        fallback never raises: the reply becomes APOLOGY_MESSAGE.
        """
        status = self.tracker.refresh()
        if status.active_provider == ActiveProvider.NONE:
            logger.error("Both chat providers are unavailable; check OPENAI_API_KEY and NOVITA_API_KEY")
            raise ProvidersUnavailableError()

        transcript = trim_history(transcript)
        facts = extract_profile_facts(user_context)
        if facts.name:
            logger.info("Extracted user name from profile context")
        temperature = get_personality(personality).temperature

        if status.primary_available:
            system_message = compose_system_message(
                personality, transcript, user_context, ActiveProvider.PRIMARY, facts=facts
            )
            try:
                text = await self.primary.generate(transcript, system_message, temperature)
            except ProviderError as e:
                logger.warning("Primary provider failed (%s); trying fallback", e.kind.value)
                if not status.fallback_available:
                    self.tracker.record(ActiveProvider.NONE)
                    raise
            else:
                self.tracker.record(ActiveProvider.PRIMARY)
                return ChatResult(text=text, provider=ActiveProvider.PRIMARY)

        return await self._generate_fallback(transcript, personality, user_context, temperature, facts)

    async def _generate_fallback(self, transcript, personality, user_context, temperature, facts) -> ChatResult:
        system_message = compose_system_message(
            personality, transcript, user_context, ActiveProvider.FALLBACK, facts=facts
        )
        try:
            text = await self.fallback.generate(transcript, system_message, temperature)
        except ProviderError as e:
            logger.error("Fallback provider also failed (%s): %s", e.kind.value, e.message)
            self.tracker.record(ActiveProvider.NONE)
            return ChatResult(text=APOLOGY_MESSAGE, provider=ActiveProvider.FALLBACK, error_kind=e.kind)

        self.tracker.record(ActiveProvider.FALLBACK)
        return ChatResult(text=text, provider=ActiveProvider.FALLBACK)
