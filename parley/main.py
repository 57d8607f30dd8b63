"""
PARLEY MAIN API
===============

This module defines the FastAPI application and all HTTP endpoints.

ENDPOINTS:
  GET    /                                        - API name and list of endpoints.
  GET    /api/health                              - Liveness check.
  POST   /api/register | /api/login | /api/logout - Accounts and bearer tokens.
  GET    /api/user, PATCH /api/user/profile       - Current user and profile fields.
  GET    /api/conversations, POST ...             - List / create conversations.
  POST   /api/conversations/{id}/generate-title   - AI title from the first messages.
  GET    /api/conversations/{id}/messages         - Stored messages.
  DELETE /api/conversations/{id}                  - Delete (not "default").
  PATCH  /api/conversations/{id}/title|personality
  GET    /api/personalities                       - Available personalities.
  POST   /api/chat                                - Send a transcript, get the reply.
  GET    /api/model-status                        - Which chat provider is active.
  POST   /api/generate-image, GET /api/flux-status
  POST   /api/generate-video, GET /api/video-status

CHAT FLOW:
  /api/chat asks the ChatOrchestrator for a reply (OpenAI first, Qwen fallback),
  stores the user's message and the reply, and reports which provider answered
  in model_info.

STARTUP:
  The lifespan function builds the stores, chat clients, provider status tracker,
  orchestrator and media services, and starts a background task that refreshes
  the provider status every few minutes.
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime
from typing import List, Optional

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from config import (
    CHATS_DATA_DIR,
    IMAGE_MODEL,
    STATUS_REFRESH_INTERVAL_SECONDS,
    USERS_DATA_DIR,
    VIDEO_MODEL,
)
from parley.models import (
    AuthResponse,
    ChatRequest,
    ChatResponse,
    Conversation,
    ConversationCreate,
    Credentials,
    ImageGenerationRequest,
    ModelInfo,
    ModelStatusResponse,
    PersonalityUpdate,
    StoredMessage,
    TitleUpdate,
    User,
    UserProfileUpdate,
    VideoGenerationRequest,
)
from parley.services.chat_orchestrator import ChatOrchestrator, ProviderStatusTracker
from parley.services.errors import ErrorKind, ProviderError, ProvidersUnavailableError
from parley.services.fallback_service import FallbackChatClient
from parley.services.media_service import ImageService, MediaGenerationError, VideoService
from parley.services.openai_service import OpenAIChatClient
from parley.services.personalities import PERSONALITIES, get_personality, list_personalities
from parley.services.storage import (
    DEFAULT_CONVERSATION_ID,
    DEFAULT_TITLE,
    ChatStore,
    UserStore,
    effective_context,
)


# -----------------------------------------------------------------------------
# LOGGING
# -----------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger("Parley")

# HTTP status for a provider failure that reaches the caller.
ERROR_STATUS = {
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.QUOTA_EXCEEDED: 429,
    ErrorKind.UNAUTHORIZED: 502,
    ErrorKind.NETWORK_UNREACHABLE: 502,
    ErrorKind.INVALID_RESPONSE: 502,
    ErrorKind.UNKNOWN: 500,
}

TITLE_FROM_TRANSCRIPT_PROMPT = (
    "You are a helpful assistant that generates short, descriptive titles (max 6 words) "
    "for conversations based on their content. Respond with just the title."
)


# -----------------------------------------------------------------------------
# GLOBAL SERVICE REFERENCES
# -----------------------------------------------------------------------------
# Set during startup (lifespan) and used by all route handlers.
chat_store: ChatStore = None
user_store: UserStore = None
primary_client: OpenAIChatClient = None
fallback_client: FallbackChatClient = None
status_tracker: ProviderStatusTracker = None
chat_orchestrator: ChatOrchestrator = None
image_service: ImageService = None
video_service: VideoService = None


async def refresh_status_periodically(tracker: ProviderStatusTracker, interval: float) -> None:
    """Keep the provider status fresh even when nobody is chatting."""
    while True:
        await asyncio.sleep(interval)
        tracker.refresh()


# -------------------------------------------------------------------------
# LIFESPAN (STARTUP / SHUTDOWN)
# -------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build every service once at startup, in dependency order:
      1. ChatStore / UserStore (JSON files under database/)
      2. OpenAI (primary) and Qwen (fallback) chat clients
      3. ProviderStatusTracker, then the ChatOrchestrator that uses it
      4. Image and video services
    On shutdown the status refresh task is cancelled.
    """
    global chat_store, user_store, primary_client, fallback_client
    global status_tracker, chat_orchestrator, image_service, video_service

    logger.info("=" * 60)
    logger.info("Parley - Starting Up...")
    logger.info("=" * 60)

    try:
        chat_store = ChatStore(CHATS_DATA_DIR)
        user_store = UserStore(USERS_DATA_DIR)
        logger.info("Storage initialized at %s", CHATS_DATA_DIR.parent)

        primary_client = OpenAIChatClient()
        fallback_client = FallbackChatClient()
        status_tracker = ProviderStatusTracker(primary_client, fallback_client)
        chat_orchestrator = ChatOrchestrator(primary_client, fallback_client, status_tracker)

        image_service = ImageService()
        video_service = VideoService()
    except Exception as e:
        logger.error(f"Fatal error during startup: {e}", exc_info=True)
        raise

    status = status_tracker.snapshot
    logger.info("=" * 60)
    logger.info("Service Status:")
    logger.info("    - OpenAI (primary): %s", "Ready" if status.primary_available else "Not configured")
    logger.info("    - Qwen (fallback):  %s", "Ready" if status.fallback_available else "Not configured")
    logger.info("    - Active model:     %s", status.active_provider.value)
    logger.info("=" * 60)

    refresh_task = asyncio.create_task(
        refresh_status_periodically(status_tracker, STATUS_REFRESH_INTERVAL_SECONDS)
    )
    yield

    logger.info("Shutting down Parley...")
    refresh_task.cancel()
    with suppress(asyncio.CancelledError):
        await refresh_task


# -------------------------------------------------------------------------
# FASTAPI APP AND CORS
# -------------------------------------------------------------------------
app = FastAPI(
    title="Parley API",
    description="Chat with OpenAI, with an automatic Qwen fallback",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------------------------------------------------------------------------
# AUTH HELPERS
# -------------------------------------------------------------------------

def bearer_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


def optional_user(token: Optional[str] = Depends(bearer_token)) -> Optional[User]:
    return user_store.user_for_token(token)


def required_user(user: Optional[User] = Depends(optional_user)) -> User:
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def load_conversation(conversation_id: str, user: Optional[User]) -> Conversation:
    """Fetch a conversation and enforce ownership: 400 bad id, 404 missing, 403 not yours."""
    try:
        conversation = chat_store.get_conversation(conversation_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    if conversation.user_id is not None and (user is None or user.id != conversation.user_id):
        raise HTTPException(status_code=403, detail="You don't have permission to access this conversation.")
    return conversation


# =========================================================================
# API ENDPOINTS
# =========================================================================

@app.get("/")
async def root():
    return {
        "message": "Parley API",
        "endpoints": {
            "/api/chat": "Chat (OpenAI with Qwen fallback)",
            "/api/model-status": "Current chat provider status",
            "/api/conversations": "Conversations and their messages",
            "/api/personalities": "Available personalities",
            "/api/generate-image": "Image generation (FLUX.1-dev)",
            "/api/generate-video": "Video generation (Wan2.1)",
            "/api/health": "Health check",
        }
    }


@app.get("/api/health")
async def health():
    return {"status": "ok"}


# -- accounts ------------------------------------------------------------------

@app.post("/api/register", response_model=AuthResponse, status_code=201)
def register(credentials: Credentials):
    try:
        user = user_store.create_user(credentials.username, credentials.password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return AuthResponse(token=user_store.issue_token(user.id), user=user)


@app.post("/api/login", response_model=AuthResponse)
def login(credentials: Credentials):
    user = user_store.verify_credentials(credentials.username, credentials.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid username or password")
    return AuthResponse(token=user_store.issue_token(user.id), user=user)


@app.post("/api/logout")
def logout(token: Optional[str] = Depends(bearer_token)):
    if token:
        user_store.revoke_token(token)
    return {"success": True}


@app.get("/api/user", response_model=User)
def get_current_user(user: User = Depends(required_user)):
    return user


@app.patch("/api/user/profile", response_model=User)
def update_profile(update: UserProfileUpdate, user: User = Depends(required_user)):
    updated = user_store.update_profile(user.id, update)
    if updated is None:
        raise HTTPException(status_code=404, detail="User not found")
    return updated


# -- conversations -------------------------------------------------------------

@app.get("/api/conversations", response_model=List[Conversation])
def list_conversations(user: Optional[User] = Depends(optional_user)):
    """Signed-in users see their own conversations; guests see unowned ones."""
    if user is not None:
        return chat_store.list_conversations(user.id, owned_only=True)
    return chat_store.list_conversations()


@app.post("/api/conversations", response_model=Conversation, status_code=201)
async def create_conversation(body: ConversationCreate, user: Optional[User] = Depends(optional_user)):
    """Create a conversation; without a real title, ask the title model to make one up."""
    title = (body.title or "").strip()
    if not title or title == DEFAULT_TITLE:
        title = await primary_client.generate_title(body.first_message or "New chat conversation") or DEFAULT_TITLE
    return chat_store.create_conversation(
        title=title,
        personality=body.personality,
        user_id=user.id if user else None,
    )


@app.post("/api/conversations/{conversation_id}/generate-title", response_model=Conversation)
async def generate_title(conversation_id: str, user: Optional[User] = Depends(optional_user)):
    load_conversation(conversation_id, user)
    messages = chat_store.get_messages(conversation_id)
    if len(messages) < 2:
        raise HTTPException(status_code=400, detail="Need at least one exchange to generate a title")

    context = "\n".join(f"{m.role}: {m.content}" for m in messages[:4])
    title = await primary_client.generate_title(
        f"Generate a short, descriptive title (maximum 6 words) for this conversation:\n{context}",
        instructions=TITLE_FROM_TRANSCRIPT_PROMPT,
    )
    if not title:
        title = f"Chat {datetime.now().strftime('%m/%d/%Y')}"
    return chat_store.update_title(conversation_id, title)


@app.get("/api/conversations/{conversation_id}/messages", response_model=List[StoredMessage])
def get_messages(conversation_id: str, user: Optional[User] = Depends(optional_user)):
    """Stored messages; signed-in users also get their profile context as a leading system turn."""
    load_conversation(conversation_id, user)
    messages = chat_store.get_messages(conversation_id)
    if user is not None:
        context = StoredMessage(
            id=0,
            conversation_id=conversation_id,
            role="system",
            content=effective_context(user) or f"Chat with {user.username}",
            created_at=datetime.now(),
        )
        messages.insert(0, context)
    return messages


@app.delete("/api/conversations/{conversation_id}")
def delete_conversation(conversation_id: str, user: Optional[User] = Depends(optional_user)):
    if conversation_id == DEFAULT_CONVERSATION_ID:
        raise HTTPException(status_code=400, detail="Cannot delete the default conversation")
    load_conversation(conversation_id, user)
    chat_store.delete_conversation(conversation_id)
    return {"message": "Conversation deleted successfully"}


@app.patch("/api/conversations/{conversation_id}/title", response_model=Conversation)
def update_title(conversation_id: str, body: TitleUpdate, user: Optional[User] = Depends(optional_user)):
    if not body.title.strip():
        raise HTTPException(status_code=400, detail="Valid title is required")
    load_conversation(conversation_id, user)
    return chat_store.update_title(conversation_id, body.title.strip())


@app.patch("/api/conversations/{conversation_id}/personality")
def update_personality(conversation_id: str, body: PersonalityUpdate, user: Optional[User] = Depends(optional_user)):
    if body.personality not in PERSONALITIES:
        raise HTTPException(
            status_code=400,
            detail={"message": "Invalid personality type", "valid_options": list(PERSONALITIES)},
        )
    load_conversation(conversation_id, user)
    conversation = chat_store.update_personality(conversation_id, body.personality)
    return {
        **conversation.model_dump(mode="json"),
        "personality_config": get_personality(body.personality).summary(),
    }


@app.get("/api/personalities")
async def get_personalities():
    return [p.summary() for p in list_personalities()]


# -- chat ----------------------------------------------------------------------

@app.post("/api/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, user: Optional[User] = Depends(optional_user)):
    """
    Send a transcript and get the assistant's reply.

    HOW IT WORKS:
    1. Checks the conversation exists ("default" always does) and belongs to the caller
    2. ChatOrchestrator picks a provider (OpenAI, else Qwen) and generates the reply,
       using the signed-in user's profile context for the system prompt
    3. Stores the user's message and the reply (nothing is stored when generation errors)
    4. Returns the reply with model_info {model, is_fallback}

    ERRORS:
    - 503 when no provider is configured at all (no network call is made)
    - 429/502/500 when OpenAI fails and no fallback is configured
    """
    conversation_id = request.conversation_id or DEFAULT_CONVERSATION_ID
    conversation = load_conversation(conversation_id, user)

    user_message = request.messages[-1]
    if user_message.role != "user":
        raise HTTPException(status_code=400, detail="Last message must be from the user.")

    personality = request.personality or conversation.personality
    user_context = effective_context(user) if user else None

    try:
        result = await chat_orchestrator.generate_reply(request.messages, personality, user_context)
    except ProvidersUnavailableError as e:
        raise HTTPException(status_code=503, detail=e.message)
    except ProviderError as e:
        logger.warning("Chat failed with %s from %s", e.kind.value, e.provider)
        raise HTTPException(status_code=ERROR_STATUS[e.kind], detail=e.user_message)

    if result.error_kind is not None:
        logger.error(
            "Conversation %s answered with the apology message (fallback failed: %s)",
            conversation_id,
            result.error_kind.value,
        )

    chat_store.add_message(conversation_id, "user", user_message.content)
    saved = chat_store.add_message(conversation_id, "assistant", result.text)
    return ChatResponse(
        message=saved,
        conversation_id=conversation_id,
        model_info=ModelInfo(model=result.provider, is_fallback=result.is_fallback),
    )


@app.get("/api/model-status", response_model=ModelStatusResponse)
async def model_status():
    """Provider status; re-checked first when the last check is more than 5 minutes old."""
    return ModelStatusResponse(**status_tracker.current().to_dict())


# -- media ---------------------------------------------------------------------

@app.post("/api/generate-image")
def generate_image(params: ImageGenerationRequest):
    try:
        image_url = image_service.generate(params)
    except MediaGenerationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"success": True, "image_url": image_url, "params": params}


@app.get("/api/flux-status")
def flux_status():
    return {"is_available": image_service.is_available(), "model": IMAGE_MODEL}


@app.post("/api/generate-video")
def generate_video(params: VideoGenerationRequest):
    try:
        video_url = video_service.generate(params)
    except MediaGenerationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"success": True, "video_url": video_url, "params": params}


@app.get("/api/video-status")
def video_status():
    return {"is_available": video_service.is_available(), "model": VIDEO_MODEL}


# -------------------------------------------------------------------------
# STANDALONE RUN (python -m parley.main)
# -------------------------------------------------------------------------
def run():
    """Start the uvicorn server (same as run.py)."""
    uvicorn.run(
        "parley.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )

if __name__ == "__main__":
    run()
