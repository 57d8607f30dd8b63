"""
CONFIGURATION MODULE
====================

PURPOSE:
  Central place for all Parley settings: API keys, paths, model names,
  timeouts, and the base system prompt shared by every personality.

WHAT THIS FILE DOES:
  - Loads environment variables from .env (so API keys stay out of code).
  - Defines paths to database/chats_data and database/users_data and creates them.
  - Exposes OPENAI_API_KEY (primary chat), NOVITA_API_KEY (fallback chat via
    Hugging Face Inference) and REPLICATE_API_KEY (image and video generation).
  - Defines model names, per-call provider timeout, model-status staleness and
    media polling settings.
  - Holds the base system prompt; personalities fill in {bot_instructions}.

USAGE:
  Import what you need: `from config import OPENAI_API_KEY, CHATS_DATA_DIR, BASE_SYSTEM_PROMPT`
  All services import from here so behaviour is consistent.
"""

import os
import logging
from pathlib import Path
from dotenv import load_dotenv


# -----------------------------------------------------------------------------
# LOGGING
# -----------------------------------------------------------------------------
logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# ENVIRONMENT
# -----------------------------------------------------------------------------
# Load environment variables from .env file (if it exists).
load_dotenv()


def _env_float(name: str, default: float) -> float:
    """Read a float setting; an unparsable value falls back to the default with a warning."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid value for %s: %r", name, raw)
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


# -----------------------------------------------------------------------------
# BASE PATH
# -----------------------------------------------------------------------------
BASE_DIR = Path(__file__).parent

# ============================================================================
# DATABASE PATHS
# ============================================================================
# - chats_data: one JSON file per conversation (metadata + ordered messages)
# - users_data: users.json with accounts and profile fields
# PARLEY_DATA_DIR moves the whole tree (tests point it at a temp folder).

DATA_DIR = Path(os.getenv("PARLEY_DATA_DIR", "").strip() or BASE_DIR / "database")
CHATS_DATA_DIR = DATA_DIR / "chats_data"
USERS_DATA_DIR = DATA_DIR / "users_data"

CHATS_DATA_DIR.mkdir(parents=True, exist_ok=True)
USERS_DATA_DIR.mkdir(parents=True, exist_ok=True)

# ============================================================================
# PRIMARY CHAT PROVIDER (OpenAI)
# ============================================================================
# The key is only considered usable if it looks like an OpenAI key (sk-...).

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
OPENAI_TITLE_MODEL = os.getenv("OPENAI_TITLE_MODEL", "gpt-3.5-turbo")
OPENAI_MAX_TOKENS = _env_int("OPENAI_MAX_TOKENS", 1000)

# ============================================================================
# FALLBACK CHAT PROVIDER (Qwen through Hugging Face Inference / Novita)
# ============================================================================

NOVITA_API_KEY = os.getenv("NOVITA_API_KEY", "").strip()
FALLBACK_MODEL = os.getenv("FALLBACK_MODEL", "Qwen/Qwen3-235B-A22B")
FALLBACK_PROVIDER = os.getenv("FALLBACK_PROVIDER", "novita")
FALLBACK_MAX_TOKENS = _env_int("FALLBACK_MAX_TOKENS", 512)

# ============================================================================
# MEDIA GENERATION (Replicate)
# ============================================================================

REPLICATE_API_KEY = os.getenv("REPLICATE_API_KEY", "").strip()
REPLICATE_API_URL = "https://api.replicate.com/v1"
IMAGE_MODEL = os.getenv("IMAGE_MODEL", "black-forest-labs/flux-dev")
VIDEO_MODEL = "Wan-AI/Wan2.1-T2V-14B"
IMAGE_POLL_INTERVAL_SECONDS = _env_float("IMAGE_POLL_INTERVAL_SECONDS", 1.0)
IMAGE_POLL_MAX_ATTEMPTS = _env_int("IMAGE_POLL_MAX_ATTEMPTS", 30)

# ============================================================================
# TIMING
# ============================================================================
# Every provider call is bounded; a timeout cancels the in-flight request.
# Model status older than STATUS_MAX_AGE_SECONDS is re-checked before it is reported,
# and a background task refreshes it every STATUS_REFRESH_INTERVAL_SECONDS.

PROVIDER_TIMEOUT_SECONDS = _env_float("PROVIDER_TIMEOUT_SECONDS", 30.0)
STATUS_MAX_AGE_SECONDS = _env_float("STATUS_MAX_AGE_SECONDS", 300.0)
STATUS_REFRESH_INTERVAL_SECONDS = _env_float("STATUS_REFRESH_INTERVAL_SECONDS", 300.0)

# Maximum conversation turns (user+assistant pairs) sent to a provider per request.
MAX_CHAT_HISTORY_TURNS = 20

# Maximum length (characters) for a single chat message.
MAX_MESSAGE_LENGTH = 32_000

# ============================================================================
# ASSISTANT PERSONALITY CONFIGURATION
# ============================================================================
# Base prompt for both providers. {bot_instructions} is replaced by the
# conversation's personality prompt (see parley.services.personalities).

ASSISTANT_NAME = (os.getenv("ASSISTANT_NAME", "").strip() or "Parley")

BASE_SYSTEM_PROMPT = """I am your helpful AI assistant. Start each conversation with "I am your helpful AI assistant. How can I help you today?"

Bot Instructions: {bot_instructions}

Remember:
1. Do not use XML tags in responses
2. Always provide accurate, helpful information
3. Be respectful and considerate"""
