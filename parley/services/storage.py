"""
STORAGE MODULE
==============

JSON-file persistence for conversations, messages and users.

  ChatStore - one file per conversation in database/chats_data/<id>.json:
                {"conversation": {...}, "messages": [{...}, ...]}
  UserStore - database/users_data/users.json with every account, plus an
              in-memory table of bearer tokens (tokens do not survive a restart).

Both stores guard file access with a lock, since FastAPI runs sync endpoints in
a thread pool. Passwords are stored as salted PBKDF2-SHA256 hashes.
"""

import hashlib
import json
import logging
import re
import secrets
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from parley.models import Conversation, StoredMessage, User, UserProfileUpdate

logger = logging.getLogger("Parley")

DEFAULT_CONVERSATION_ID = "default"
DEFAULT_TITLE = "New Conversation"

_CONVERSATION_ID = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
_PBKDF2_ITERATIONS = 390_000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_conversation_id(conversation_id: str) -> str:
    """Conversation ids become file names, so only allow a safe character set."""
    if not conversation_id or not _CONVERSATION_ID.match(conversation_id):
        raise ValueError(f"Invalid conversation id: {conversation_id!r}")
    return conversation_id


def new_conversation_id() -> str:
    return secrets.token_urlsafe(15)


# ==============================================================================
# CONVERSATIONS AND MESSAGES
# ==============================================================================

class ChatStore:
    def __init__(self, chats_dir: Path):
        self.chats_dir = Path(chats_dir)
        self.chats_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._ensure_default_conversation()

    def _ensure_default_conversation(self) -> None:
        """The default conversation always exists, unowned, from the moment the store opens."""
        with self._lock:
            if self._read(DEFAULT_CONVERSATION_ID) is not None:
                return
            conversation = Conversation(id=DEFAULT_CONVERSATION_ID, title=DEFAULT_TITLE, created_at=utcnow())
            self._write(DEFAULT_CONVERSATION_ID, {"conversation": conversation.model_dump(mode="json"), "messages": []})
        logger.info("Created default conversation")

    def _path(self, conversation_id: str) -> Path:
        return self.chats_dir / f"{validate_conversation_id(conversation_id)}.json"

    def _read(self, conversation_id: str) -> Optional[dict]:
        path = self._path(conversation_id)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, conversation_id: str, data: dict) -> None:
        path = self._path(conversation_id)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)
        tmp_path.replace(path)

    # -- conversations ---------------------------------------------------------

    def create_conversation(
        self,
        conversation_id: Optional[str] = None,
        title: str = DEFAULT_TITLE,
        personality: str = "default",
        user_id: Optional[int] = None,
    ) -> Conversation:
        conversation = Conversation(
            id=validate_conversation_id(conversation_id or new_conversation_id()),
            title=title,
            personality=personality,
            user_id=user_id,
            created_at=utcnow(),
        )
        with self._lock:
            data = self._read(conversation.id) or {"messages": []}
            data["conversation"] = conversation.model_dump(mode="json")
            self._write(conversation.id, data)
        logger.info("Created conversation %s", conversation.id)
        return conversation

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        with self._lock:
            data = self._read(conversation_id)
        if not data:
            return None
        return Conversation.model_validate(data["conversation"])

    def list_conversations(self, user_id: Optional[int] = None, owned_only: bool = False) -> List[Conversation]:
        """
        With owned_only, return the conversations of user_id; otherwise return the
        conversations that belong to nobody. Newest first.
        """
        conversations = []
        with self._lock:
            for path in self.chats_dir.glob("*.json"):
                try:
                    with open(path, "r", encoding="utf-8") as f:
                        data = json.load(f)
                    conversations.append(Conversation.model_validate(data["conversation"]))
                except (OSError, ValueError, KeyError) as e:
                    logger.warning("Could not load conversation file %s: %s", path, e)
        if owned_only:
            conversations = [c for c in conversations if c.user_id == user_id]
        else:
            conversations = [c for c in conversations if c.user_id is None]
        return sorted(conversations, key=lambda c: c.created_at, reverse=True)

    def _update_conversation(self, conversation_id: str, **changes) -> Optional[Conversation]:
        with self._lock:
            data = self._read(conversation_id)
            if not data:
                return None
            conversation = Conversation.model_validate({**data["conversation"], **changes})
            data["conversation"] = conversation.model_dump(mode="json")
            self._write(conversation_id, data)
        return conversation

    def update_title(self, conversation_id: str, title: str) -> Optional[Conversation]:
        return self._update_conversation(conversation_id, title=title)

    def update_personality(self, conversation_id: str, personality: str) -> Optional[Conversation]:
        return self._update_conversation(conversation_id, personality=personality)

    def delete_conversation(self, conversation_id: str) -> bool:
        if conversation_id == DEFAULT_CONVERSATION_ID:
            raise ValueError("Cannot delete the default conversation")
        with self._lock:
            path = self._path(conversation_id)
            if not path.exists():
                return False
            path.unlink()
        logger.info("Deleted conversation %s", conversation_id)
        return True

    # -- messages --------------------------------------------------------------

    def add_message(self, conversation_id: str, role: str, content: str) -> StoredMessage:
        """Append a message; KeyError if the conversation does not exist."""
        with self._lock:
            data = self._read(conversation_id)
            if data is None:
                raise KeyError(conversation_id)
            message = StoredMessage(
                id=len(data["messages"]) + 1,
                conversation_id=conversation_id,
                role=role,
                content=content,
                created_at=utcnow(),
            )
            data["messages"].append(message.model_dump(mode="json"))
            self._write(conversation_id, data)
        return message

    def get_messages(self, conversation_id: str) -> List[StoredMessage]:
        with self._lock:
            data = self._read(conversation_id)
        if not data:
            return []
        return [StoredMessage.model_validate(m) for m in data["messages"]]


# ==============================================================================
# USERS AND TOKENS
# ==============================================================================

def hash_password(password: str, salt_hex: str) -> str:
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), bytes.fromhex(salt_hex), _PBKDF2_ITERATIONS)
    return digest.hex()


def effective_context(user: User) -> Optional[str]:
    """
    Text used as the user's profile context in prompts: the free-text system
    context when set, otherwise "field: value" lines built from the profile.
    """
    if user.system_context and user.system_context.strip():
        return user.system_context
    lines = []
    if user.full_name:
        lines.append(f"name: {user.full_name}")
    if user.location:
        lines.append(f"location: {user.location}")
    if user.interests:
        lines.append(f"interests: {', '.join(user.interests)}")
    if user.profession:
        lines.append(f"profession: {user.profession}")
    if user.pets:
        lines.append(f"pets: {user.pets}")
    if user.additional_info:
        lines.append(user.additional_info)
    return "\n".join(lines) or None


class UserStore:
    def __init__(self, users_dir: Path):
        self.path = Path(users_dir) / "users.json"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._tokens: Dict[str, int] = {}

    def _load(self) -> dict:
        if not self.path.exists():
            return {"next_id": 1, "users": {}}
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _save(self, data: dict) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    @staticmethod
    def _public(record: dict) -> User:
        return User.model_validate({k: v for k, v in record.items() if k not in ("password", "salt")})

    def create_user(self, username: str, password: str) -> User:
        username = username.strip()
        if not username or not password:
            raise ValueError("Username and password are required.")
        with self._lock:
            data = self._load()
            if username.lower() in data["users"]:
                raise ValueError("Username already exists.")
            salt = secrets.token_hex(16)
            record = {
                "id": data["next_id"],
                "username": username,
                "salt": salt,
                "password": hash_password(password, salt),
                "interests": [],
            }
            data["users"][username.lower()] = record
            data["next_id"] += 1
            self._save(data)
        logger.info("Registered user %s", username)
        return self._public(record)

    def verify_credentials(self, username: str, password: str) -> Optional[User]:
        with self._lock:
            record = self._load()["users"].get(username.strip().lower())
        if not record:
            return None
        if not secrets.compare_digest(hash_password(password, record["salt"]), record["password"]):
            return None
        return self._public(record)

    def get_user(self, user_id: int) -> Optional[User]:
        with self._lock:
            users = self._load()["users"]
        for record in users.values():
            if record["id"] == user_id:
                return self._public(record)
        return None

    def update_profile(self, user_id: int, update: UserProfileUpdate) -> Optional[User]:
        changes = update.model_dump(exclude_none=True)
        with self._lock:
            data = self._load()
            for record in data["users"].values():
                if record["id"] == user_id:
                    record.update(changes)
                    self._save(data)
                    return self._public(record)
        return None

    # -- tokens ----------------------------------------------------------------

    def issue_token(self, user_id: int) -> str:
        token = secrets.token_hex(32)
        with self._lock:
            self._tokens[token] = user_id
        return token

    def revoke_token(self, token: str) -> None:
        with self._lock:
            self._tokens.pop(token, None)

    def user_for_token(self, token: Optional[str]) -> Optional[User]:
        if not token:
            return None
        with self._lock:
            user_id = self._tokens.get(token)
        return self.get_user(user_id) if user_id is not None else None
