"""Shared fixtures: isolated data directory, fake chat clients, and an API client."""

import os
import tempfile

# config.py reads these at import time, so they must be set before anything imports it.
os.environ["PARLEY_DATA_DIR"] = tempfile.mkdtemp(prefix="parley-tests-")
os.environ["OPENAI_API_KEY"] = ""
os.environ["NOVITA_API_KEY"] = ""
os.environ["REPLICATE_API_KEY"] = ""

from typing import List, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from parley.models import ChatMessage  # noqa: E402
from parley.services.chat_orchestrator import ChatOrchestrator, ProviderStatusTracker  # noqa: E402
from parley.services.storage import ChatStore, UserStore  # noqa: E402


class FakeChatClient:
    """Stands in for a provider client; records every generate() call."""

    def __init__(self, name: str, available: bool = True, reply: str = "Hi there!",
                 error: Optional[Exception] = None, title: Optional[str] = "Test Title"):
        self.name = name
        self.available = available
        self.reply = reply
        self.error = error
        self.title = title
        self.calls: List[dict] = []
        self.title_prompts: List[str] = []

    def is_available(self) -> bool:
        return self.available

    async def generate(self, transcript, system_message, temperature=0.7):
        self.calls.append(
            {"transcript": list(transcript), "system_message": system_message, "temperature": temperature}
        )
        if self.error is not None:
            raise self.error
        return self.reply

    async def generate_title(self, prompt, instructions=None):
        self.title_prompts.append(prompt)
        return self.title


def user_turn(content: str) -> ChatMessage:
    return ChatMessage(role="user", content=content)


@pytest.fixture
def primary() -> FakeChatClient:
    return FakeChatClient("openai", reply="Primary reply")


@pytest.fixture
def fallback() -> FakeChatClient:
    return FakeChatClient("qwen", reply="Fallback reply\n\n(Note: fallback mode)")


@pytest.fixture
def tracker(primary, fallback) -> ProviderStatusTracker:
    return ProviderStatusTracker(primary, fallback)


@pytest.fixture
def orchestrator(primary, fallback, tracker) -> ChatOrchestrator:
    return ChatOrchestrator(primary, fallback, tracker)


@pytest.fixture
def api(tmp_path, primary, fallback, tracker, orchestrator):
    """TestClient with fresh stores and fake providers swapped in after startup."""
    from parley import main

    with TestClient(main.app) as client:
        main.chat_store = ChatStore(tmp_path / "chats")
        main.user_store = UserStore(tmp_path / "users")
        main.primary_client = primary
        main.fallback_client = fallback
        main.status_tracker = tracker
        main.chat_orchestrator = orchestrator
        yield client


@pytest.fixture
def auth_headers(api):
    """Register a user and return its Authorization header."""
    response = api.post("/api/register", json={"username": "bella", "password": "barley"})
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['token']}"}
