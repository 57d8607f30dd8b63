"""Tests for system message composition."""

from parley.models import ActiveProvider, ChatMessage
from parley.services.prompt_composer import asks_for_name, base_instructions, compose_system_message

from tests.conftest import user_turn


class TestBaseInstructions:
    def test_personality_prompt_is_included(self) -> None:
        prompt = compose_system_message("poetic", [user_turn("hi")])
        assert "poetic and creative AI assistant" in prompt
        assert prompt.startswith("I am your helpful AI assistant.")

    def test_unknown_personality_uses_default(self) -> None:
        assert base_instructions("pirate") == base_instructions("default")

    def test_no_context_returns_base_only(self) -> None:
        prompt = compose_system_message("default", [user_turn("hi")], None)
        assert prompt == base_instructions("default")
        assert "User Details" not in prompt


class TestUserDetails:
    def test_details_block_from_facts(self) -> None:
        prompt = compose_system_message("default", [user_turn("hi")], "My name is Alice\nI live in Paris")
        assert "User Details:\n- Your name is Alice\n- You live in Paris" in prompt
        assert "Never say you don't know their personal details" in prompt

    def test_raw_context_used_when_nothing_extracted(self) -> None:
        prompt = compose_system_message(
            "default", [user_turn("hi")], "Prefers metric units", provider=ActiveProvider.FALLBACK
        )
        assert "User Details:\nPrefers metric units" in prompt
        assert "NEVER say you don't know or can't access this information" in prompt

    def test_blank_context_is_ignored(self) -> None:
        assert "User Details" not in compose_system_message("default", [user_turn("hi")], "   \n ")

    def test_primary_quotes_original_context(self) -> None:
        prompt = compose_system_message("default", [user_turn("hi")], "My name is Alice")
        assert prompt.endswith("Original system context provided by user:\nMy name is Alice")

    def test_fallback_does_not_quote_original_context(self) -> None:
        prompt = compose_system_message(
            "default", [user_turn("hi")], "My name is Alice", provider=ActiveProvider.FALLBACK
        )
        assert "Original system context" not in prompt

    def test_deterministic(self) -> None:
        args = ("friendly", [user_turn("What's my name?")], "My name is Alice")
        assert compose_system_message(*args) == compose_system_message(*args)


class TestNameReminder:
    def test_reminder_names_bella(self) -> None:
        prompt = compose_system_message(
            "default",
            [ChatMessage(role="user", content="What's my name?")],
            "My name is Bella",
            provider=ActiveProvider.FALLBACK,
        )
        assert "Their name is Bella." in prompt

    def test_no_reminder_without_question(self) -> None:
        prompt = compose_system_message("default", [user_turn("Tell me a joke")], "My name is Bella")
        assert "IMPORTANT REMINDER" not in prompt

    def test_no_reminder_without_known_name(self) -> None:
        prompt = compose_system_message("default", [user_turn("Who am I?")], "I like tea")
        assert "IMPORTANT REMINDER" not in prompt

    def test_question_detection(self) -> None:
        assert asks_for_name([user_turn("hey, do you know my name")])
        assert asks_for_name([user_turn("WHAT IS MY NAME")])
        assert asks_for_name([user_turn("What’s my name?")])
        assert not asks_for_name([user_turn("What's your name?")])
