"""End-to-end tests of the HTTP API with fake chat providers."""

import logging

from parley.services.chat_orchestrator import APOLOGY_MESSAGE
from parley.services.errors import ErrorKind, ProviderError


def _chat(api, content="Hello", headers=None, **extra):
    body = {"messages": [{"role": "user", "content": content}], **extra}
    return api.post("/api/chat", json=body, headers=headers or {})


class TestChat:
    def test_primary_reply(self, api) -> None:
        response = _chat(api)

        assert response.status_code == 200
        data = response.json()
        assert data["message"]["content"] == "Primary reply"
        assert data["message"]["role"] == "assistant"
        assert data["conversation_id"] == "default"
        assert data["model_info"] == {"model": "primary", "is_fallback": False}

    def test_fallback_reply(self, api, primary) -> None:
        primary.error = ProviderError(ErrorKind.QUOTA_EXCEEDED, "openai")

        data = _chat(api).json()

        assert data["model_info"] == {"model": "fallback", "is_fallback": True}
        assert data["message"]["content"].startswith("Fallback reply")

    def test_exchange_is_stored(self, api) -> None:
        _chat(api, "Remember this")

        messages = api.get("/api/conversations/default/messages").json()
        assert [(m["role"], m["content"]) for m in messages] == [
            ("user", "Remember this"),
            ("assistant", "Primary reply"),
        ]

    def test_no_provider_configured(self, api, primary, fallback) -> None:
        primary.available = False
        fallback.available = False

        response = _chat(api)

        assert response.status_code == 503
        assert "unavailable" in response.json()["detail"]
        assert primary.calls == [] and fallback.calls == []

    def test_primary_error_without_fallback(self, api, primary, fallback) -> None:
        primary.error = ProviderError(ErrorKind.RATE_LIMITED, "openai")
        fallback.available = False

        response = _chat(api)

        assert response.status_code == 429
        # Nothing is stored for a failed exchange.
        assert api.get("/api/conversations/default/messages").json() == []

    def test_last_turn_must_be_user(self, api) -> None:
        body = {"messages": [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]}
        assert api.post("/api/chat", json=body).status_code == 400

    def test_empty_transcript_rejected(self, api) -> None:
        assert api.post("/api/chat", json={"messages": []}).status_code == 422

    def test_unknown_conversation(self, api) -> None:
        assert _chat(api, conversation_id="missing").status_code == 404

    def test_profile_context_reaches_prompt(self, api, auth_headers, primary) -> None:
        api.patch("/api/user/profile", json={"full_name": "Bella Lawrence"}, headers=auth_headers)

        _chat(api, "What's my name?", headers=auth_headers)

        system_message = primary.calls[0]["system_message"]
        assert "- Your name is Bella Lawrence" in system_message
        assert "Their name is Bella Lawrence." in system_message

    def test_conversation_personality_used(self, api, primary) -> None:
        conversation = api.post("/api/conversations", json={"title": "Haiku", "personality": "poetic"}).json()

        _chat(api, conversation_id=conversation["id"])

        assert primary.calls[0]["temperature"] == 0.9

    def test_default_conversation_personality_used(self, api, primary) -> None:
        _chat(api)
        updated = api.patch("/api/conversations/default/personality", json={"personality": "poetic"})
        assert updated.json()["personality"] == "poetic"

        _chat(api, "Again")

        assert primary.calls[-1]["temperature"] == 0.9

    def test_request_personality_overrides_conversation(self, api, primary) -> None:
        api.patch("/api/conversations/default/personality", json={"personality": "poetic"})

        _chat(api, personality="expert")

        assert primary.calls[-1]["temperature"] == 0.4

    def test_fallback_failure_is_logged(self, api, primary, fallback, caplog) -> None:
        primary.error = ProviderError(ErrorKind.NETWORK_UNREACHABLE, "openai")
        fallback.error = ProviderError(ErrorKind.QUOTA_EXCEEDED, "qwen")

        with caplog.at_level(logging.ERROR, logger="Parley"):
            response = _chat(api)

        assert response.status_code == 200
        assert response.json()["message"]["content"] == APOLOGY_MESSAGE
        assert any("apology" in r.getMessage() and "quota_exceeded" in r.getMessage() for r in caplog.records)


class TestModelStatus:
    def test_reports_active_provider(self, api) -> None:
        data = api.get("/api/model-status").json()
        assert data["active_provider"] == "primary"
        assert data["primary_available"] is True
        assert data["fallback_available"] is True
        assert "last_checked_at" in data

    def test_reflects_last_chat(self, api, primary) -> None:
        primary.error = ProviderError(ErrorKind.NETWORK_UNREACHABLE, "openai")
        _chat(api)

        assert api.get("/api/model-status").json()["active_provider"] == "fallback"

    def test_two_reads_agree(self, api) -> None:
        first = api.get("/api/model-status").json()
        second = api.get("/api/model-status").json()
        assert first == second


class TestConversations:
    def test_default_exists_before_any_chat(self, api) -> None:
        messages = api.get("/api/conversations/default/messages")

        assert messages.status_code == 200
        assert messages.json() == []
        assert [c["id"] for c in api.get("/api/conversations").json()] == ["default"]
        updated = api.patch("/api/conversations/default/personality", json={"personality": "friendly"})
        assert updated.status_code == 200

    def test_create_with_generated_title(self, api, primary) -> None:
        response = api.post("/api/conversations", json={"first_message": "Plan my trip to Rome"})

        assert response.status_code == 201
        assert response.json()["title"] == "Test Title"
        assert primary.title_prompts == ["Plan my trip to Rome"]

    def test_create_keeps_given_title(self, api, primary) -> None:
        assert api.post("/api/conversations", json={"title": "Groceries"}).json()["title"] == "Groceries"
        assert primary.title_prompts == []

    def test_title_falls_back_to_default(self, api, primary) -> None:
        primary.title = None
        assert api.post("/api/conversations", json={}).json()["title"] == "New Conversation"

    def test_list_rename_delete(self, api) -> None:
        conversation = api.post("/api/conversations", json={"title": "Old"}).json()

        renamed = api.patch(f"/api/conversations/{conversation['id']}/title", json={"title": "New"})
        assert renamed.json()["title"] == "New"
        assert [c["title"] for c in api.get("/api/conversations").json()] == ["New", "New Conversation"]

        assert api.delete(f"/api/conversations/{conversation['id']}").status_code == 200
        assert [c["id"] for c in api.get("/api/conversations").json()] == ["default"]

    def test_blank_title_rejected(self, api) -> None:
        conversation = api.post("/api/conversations", json={"title": "Old"}).json()
        assert api.patch(f"/api/conversations/{conversation['id']}/title", json={"title": "  "}).status_code == 400

    def test_default_cannot_be_deleted(self, api) -> None:
        assert api.delete("/api/conversations/default").status_code == 400

    def test_personality_update(self, api) -> None:
        conversation = api.post("/api/conversations", json={"title": "x"}).json()
        url = f"/api/conversations/{conversation['id']}/personality"

        bad = api.patch(url, json={"personality": "pirate"})
        assert bad.status_code == 400
        assert "concise" in bad.json()["detail"]["valid_options"]

        good = api.patch(url, json={"personality": "concise"}).json()
        assert good["personality"] == "concise"
        assert good["personality_config"]["name"] == "Concise"

    def test_generate_title_needs_an_exchange(self, api) -> None:
        conversation = api.post("/api/conversations", json={"title": "x"}).json()
        url = f"/api/conversations/{conversation['id']}/generate-title"

        assert api.post(url).status_code == 400

        _chat(api, "Tell me about Rome", conversation_id=conversation["id"])
        assert api.post(url).json()["title"] == "Test Title"

    def test_owned_conversation_is_private(self, api, auth_headers) -> None:
        conversation = api.post("/api/conversations", json={"title": "Mine"}, headers=auth_headers).json()
        url = f"/api/conversations/{conversation['id']}/messages"

        assert api.get(url, headers=auth_headers).status_code == 200
        assert api.get(url).status_code == 403
        assert [c["id"] for c in api.get("/api/conversations").json()] == ["default"]
        assert [c["title"] for c in api.get("/api/conversations", headers=auth_headers).json()] == ["Mine"]

    def test_messages_lead_with_profile_context(self, api, auth_headers) -> None:
        api.patch("/api/user/profile", json={"location": "Fort Wayne"}, headers=auth_headers)
        _chat(api, headers=auth_headers)

        messages = api.get("/api/conversations/default/messages", headers=auth_headers).json()
        assert messages[0]["role"] == "system"
        assert messages[0]["content"] == "location: Fort Wayne"
        assert len(messages) == 3


class TestAccounts:
    def test_login_logout(self, api, auth_headers) -> None:
        assert api.get("/api/user", headers=auth_headers).json()["username"] == "bella"

        login = api.post("/api/login", json={"username": "bella", "password": "barley"})
        assert login.status_code == 200
        token = {"Authorization": f"Bearer {login.json()['token']}"}

        api.post("/api/logout", headers=token)
        assert api.get("/api/user", headers=token).status_code == 401

    def test_bad_password(self, api, auth_headers) -> None:
        assert api.post("/api/login", json={"username": "bella", "password": "nope"}).status_code == 401

    def test_duplicate_registration(self, api, auth_headers) -> None:
        assert api.post("/api/register", json={"username": "bella", "password": "x"}).status_code == 400

    def test_user_requires_token(self, api) -> None:
        assert api.get("/api/user").status_code == 401


class TestMisc:
    def test_personalities(self, api) -> None:
        ids = [p["id"] for p in api.get("/api/personalities").json()]
        assert ids == ["default", "professional", "friendly", "expert", "poetic", "concise"]

    def test_health_and_root(self, api) -> None:
        assert api.get("/api/health").json() == {"status": "ok"}
        assert "/api/chat" in api.get("/").json()["endpoints"]

    def test_media_status_without_key(self, api) -> None:
        assert api.get("/api/video-status").json()["is_available"] is False
        assert api.get("/api/flux-status").json()["is_available"] is False

    def test_image_generation_without_key(self, api) -> None:
        response = api.post("/api/generate-image", json={"prompt": "a fox"})
        assert response.status_code == 500
        assert "REPLICATE_API_KEY" in response.json()["detail"]

    def test_image_params_validated(self, api) -> None:
        assert api.post("/api/generate-image", json={"prompt": "a fox", "width": 4096}).status_code == 422
