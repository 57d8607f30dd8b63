"""
DATA MODELS MODULE
==================

This file defines the Pydantic models used for API requests, responses, and
internal storage. FastAPI uses these to validate incoming JSON and to
serialize responses; the storage layer uses them when saving/loading files.

MODELS:
  ChatMessage             - One transcript turn (role + content).
  ChatRequest / ChatResponse - Body of POST /api/chat and its reply.
  ModelInfo / ModelStatusResponse - Which provider answered / current provider status.
  Conversation / StoredMessage - Persisted conversation metadata and messages.
  User / UserProfileUpdate - Accounts and the editable profile fields.
  ImageGenerationRequest / VideoGenerationRequest - Media generation parameters.
"""

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from config import MAX_MESSAGE_LENGTH, VIDEO_MODEL

Role = Literal["user", "assistant", "system"]

PersonalityId = Literal["default", "professional", "friendly", "expert", "poetic", "concise"]


class ActiveProvider(str, Enum):
    """Which chat provider answered (or would answer) a request."""
    PRIMARY = "primary"
    FALLBACK = "fallback"
    NONE = "none"


# ==============================================================================
# CHAT
# ==============================================================================

class ChatMessage(BaseModel):
    """
    A single transcript turn. Order in the list defines chronology.
    Frozen: turns are appended, never edited.
    """
    model_config = {"frozen": True}

    role: Role
    content: str = Field(..., max_length=MAX_MESSAGE_LENGTH)


class ChatRequest(BaseModel):
    """
    Request body for POST /api/chat.

    - messages: full transcript; the last turn must be the user's new message.
    - personality: tone of the reply (defaults to the conversation's, then "default").
    - conversation_id: where to store the exchange ("default" when omitted).
    """
    messages: List[ChatMessage] = Field(..., min_length=1)
    personality: Optional[PersonalityId] = None
    conversation_id: Optional[str] = None


class ModelInfo(BaseModel):
    model: ActiveProvider
    is_fallback: bool


class StoredMessage(BaseModel):
    id: int
    conversation_id: str
    role: Role
    content: str
    created_at: datetime


class ChatResponse(BaseModel):
    message: StoredMessage
    conversation_id: str
    model_info: ModelInfo


class ModelStatusResponse(BaseModel):
    active_provider: ActiveProvider
    primary_available: bool
    fallback_available: bool
    last_checked_at: datetime


# ==============================================================================
# CONVERSATIONS
# ==============================================================================

class Conversation(BaseModel):
    id: str
    title: str
    personality: PersonalityId = "default"
    user_id: Optional[int] = None
    created_at: datetime


class ConversationCreate(BaseModel):
    title: Optional[str] = None
    first_message: Optional[str] = None
    personality: PersonalityId = "default"


class TitleUpdate(BaseModel):
    title: str


class PersonalityUpdate(BaseModel):
    personality: str


# ==============================================================================
# USERS
# ==============================================================================

class UserProfileUpdate(BaseModel):
    """Editable profile fields; anything left as None is not touched."""
    full_name: Optional[str] = None
    location: Optional[str] = None
    interests: Optional[List[str]] = None
    profession: Optional[str] = None
    pets: Optional[str] = None
    additional_info: Optional[str] = None
    system_context: Optional[str] = None


class User(BaseModel):
    """A user as returned by the API (never includes the password hash)."""
    id: int
    username: str
    full_name: Optional[str] = None
    location: Optional[str] = None
    interests: List[str] = Field(default_factory=list)
    profession: Optional[str] = None
    pets: Optional[str] = None
    additional_info: Optional[str] = None
    system_context: Optional[str] = None


class Credentials(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1)


class AuthResponse(BaseModel):
    token: str
    user: User


# ==============================================================================
# MEDIA GENERATION
# ==============================================================================

class ImageGenerationRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=1000)
    seed: int = 0
    randomize_seed: bool = True
    width: int = Field(512, ge=256, le=1024)
    height: int = Field(512, ge=256, le=1024)
    guidance_scale: float = Field(7.5, ge=0, le=20)
    num_inference_steps: int = Field(20, ge=1, le=50)


class VideoGenerationRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=1000)
    model: Literal["Wan-AI/Wan2.1-T2V-14B"] = VIDEO_MODEL
