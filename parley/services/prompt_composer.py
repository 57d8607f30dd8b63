"""
PROMPT COMPOSER
===============

Builds the single system message sent ahead of the transcript:

  1. BASE_SYSTEM_PROMPT with the personality's instructions filled in.
  2. A "User Details:" block, only when the user's context yields facts
     (or, failing that, is at least non-blank raw text).
  3. Directives telling the model never to claim it doesn't know those details.
  4. A reminder naming the user when the transcript asks "what's my name?".

The output depends only on the inputs, so identical requests give identical prompts.
"""

import logging
from typing import Iterable, Optional

from config import BASE_SYSTEM_PROMPT
from parley.models import ActiveProvider, ChatMessage
from parley.services.personalities import get_personality
from parley.services.profile_extractor import ProfileFacts, extract_profile_facts

logger = logging.getLogger("Parley")

NAME_QUESTIONS = (
    "what's my name",
    "what is my name",
    "do you know my name",
    "who am i",
)

PRIMARY_DIRECTIVES = """IMPORTANT: You must remember these user details and incorporate them naturally in your responses when relevant.
When the user asks about their name, location, interests, profession, or pets, always answer using the information above.
Never say you don't know their personal details if they're listed above. Answer as if you already know this information."""

FALLBACK_DIRECTIVES = """INSTRUCTIONS:
1. When asked "What's my name?" respond with the name listed above.
2. When asked about name, location, interests, profession, or pets, use EXACTLY the information above.
3. NEVER say you don't know or can't access this information - it's right above!
4. Answer as if you've always known this information - don't say "according to your profile" or similar phrases.

REMEMBER: You already know the user's name and details. ALWAYS use this information when asked."""


def asks_for_name(transcript: Iterable[ChatMessage]) -> bool:
    """True if any turn contains a "what's my name"-style question."""
    for message in transcript:
        content = message.content.lower().replace("’", "'")
        if any(question in content for question in NAME_QUESTIONS):
            return True
    return False


def base_instructions(personality: str) -> str:
    return BASE_SYSTEM_PROMPT.format(bot_instructions=get_personality(personality).system_prompt)


def compose_system_message(
    personality: str,
    transcript: Iterable[ChatMessage],
    user_context: Optional[str] = None,
    provider: ActiveProvider = ActiveProvider.PRIMARY,
    facts: Optional[ProfileFacts] = None,
) -> str:
    """
    Return the system message for one provider call.

    facts may be passed in when the caller already extracted them; otherwise they
    are extracted from user_context here.
    """
    system_message = base_instructions(personality)

    context = (user_context or "").strip()
    if facts is None:
        facts = extract_profile_facts(context)
    if facts.is_empty() and not context:
        return system_message

    details = "\n".join(facts.as_lines()) if not facts.is_empty() else context
    directives = PRIMARY_DIRECTIVES if provider == ActiveProvider.PRIMARY else FALLBACK_DIRECTIVES

    system_message += f"\n\nUser Details:\n{details}\n\n{directives}"

    # The primary model also sees the context exactly as the user wrote it.
    if provider == ActiveProvider.PRIMARY:
        system_message += f"\n\nOriginal system context provided by user:\n{context}"

    if facts.name and asks_for_name(transcript):
        logger.info("Name question detected; adding name reminder to the system message")
        system_message += (
            f"\n\nIMPORTANT REMINDER: The user has asked about their name. "
            f"Their name is {facts.name}. DO NOT say you don't know their name."
        )

    return system_message
