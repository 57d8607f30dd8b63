"""
PROFILE FACT EXTRACTOR
======================

Pulls a handful of well-known facts (name, location, interests, profession,
pets) out of the free-text context a user keeps in their profile. The facts
are turned into a "User Details" block in the system prompt so both chat
providers can answer "what's my name?" and friends.

Each category has an ordered list of patterns; the first one that matches wins.
Values are trimmed but otherwise kept verbatim. A missing fact is simply None.
"""

import re
from dataclasses import dataclass, fields
from typing import Iterator, List, Optional, Pattern

# Values stop at the end of a line: only spaces and tabs count as whitespace.
NAME_PATTERNS: List[Pattern] = [
    re.compile(r"name(?:[ \t]+is)?(?:[ \t]*:[ \t]*|[ \t]+)([\w \t.']+)", re.IGNORECASE),
    re.compile(r"My[ \t]+name[ \t]+is[ \t]+([\w \t.']+)", re.IGNORECASE),
    re.compile(r"I[ \t]+am[ \t]+([\w \t.']+)", re.IGNORECASE),
    re.compile(r"I'm[ \t]+([\w \t.']+)", re.IGNORECASE),
]

LOCATION_PATTERNS: List[Pattern] = [
    re.compile(r"location(?:[ \t]+is)?(?:[ \t]*:[ \t]*|[ \t]+)([\w \t.,]+)", re.IGNORECASE),
    re.compile(r"(?:I[ \t]+live|I'm[ \t]+from|I[ \t]+reside)[ \t]+in[ \t]+([\w \t.,]+)", re.IGNORECASE),
    re.compile(r"from[ \t]+([\w \t.,]+)", re.IGNORECASE),
]

INTERESTS_PATTERNS: List[Pattern] = [
    re.compile(r"interests(?:[ \t]+are)?(?:[ \t]*:[ \t]*|[ \t]+)([\w \t,.;{}]+)", re.IGNORECASE),
    re.compile(r"(?:I[ \t]+like|I[ \t]+enjoy|I[ \t]+love)[ \t]+([\w \t,.;]+)", re.IGNORECASE),
]

PROFESSION_PATTERNS: List[Pattern] = [
    re.compile(r"profession(?:[ \t]+is)?(?:[ \t]*:[ \t]*|[ \t]+)([\w \t&,.\-]+)", re.IGNORECASE),
    re.compile(r"(?:I[ \t]+work[ \t]+as|I[ \t]+am[ \t]+a|I'm[ \t]+a)[ \t]+([\w \t&,.\-]+)", re.IGNORECASE),
    re.compile(r"(?:I'm|I[ \t]+am)[ \t]+(?:a|an)[ \t]+([\w \t&,.\-]+)", re.IGNORECASE),
]

PETS_PATTERNS: List[Pattern] = [
    re.compile(r"pets?(?:[ \t]+are)?(?:[ \t]*:[ \t]*|[ \t]+)([\w \t,.()]+)", re.IGNORECASE),
    re.compile(r"(?:I[ \t]+have|I[ \t]+own)[ \t]+(?:a[ \t]+pet|pets|a)[ \t]+([\w \t,.()]+)", re.IGNORECASE),
]


@dataclass(frozen=True)
class ProfileFacts:
    name: Optional[str] = None
    location: Optional[str] = None
    interests: Optional[str] = None
    profession: Optional[str] = None
    pets: Optional[str] = None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def as_lines(self) -> Iterator[str]:
        """Yield the facts as "- ..." lines in a fixed order, skipping missing ones."""
        if self.name:
            yield f"- Your name is {self.name}"
        if self.location:
            yield f"- You live in {self.location}"
        if self.interests:
            yield f"- Your interests include {self.interests}"
        if self.profession:
            yield f"- Your profession is {self.profession}"
        if self.pets:
            yield f"- You have pets: {self.pets}"


def first_match(patterns: List[Pattern], text: str) -> Optional[str]:
    """Return the trimmed capture of the first pattern that matches, or None."""
    for pattern in patterns:
        match = pattern.search(text)
        if match and match.group(1):
            value = match.group(1).strip()
            if value:
                return value
    return None


def extract_profile_facts(text: Optional[str]) -> ProfileFacts:
    if not text or not text.strip():
        return ProfileFacts()
    return ProfileFacts(
        name=first_match(NAME_PATTERNS, text),
        location=first_match(LOCATION_PATTERNS, text),
        interests=first_match(INTERESTS_PATTERNS, text),
        profession=first_match(PROFESSION_PATTERNS, text),
        pets=first_match(PETS_PATTERNS, text),
    )
