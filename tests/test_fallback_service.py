"""Tests for the Qwen fallback chat client."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from parley.models import ChatMessage
from parley.services.errors import ErrorKind, ProviderError
from parley.services.fallback_service import (
    CONTINUATION_PROMPT,
    EMPTY_REPLY,
    FALLBACK_DISCLAIMER,
    INTRODUCTION_PROMPT,
    FallbackChatClient,
    classify_inference_error,
    clean_output,
    prepare_transcript,
)

from tests.conftest import user_turn

ROUTER_URL = "https://router.huggingface.co/novita/v3/openai/chat/completions"


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _status_error(status: int, message: str = "error") -> httpx.HTTPStatusError:
    request = httpx.Request("POST", ROUTER_URL)
    return httpx.HTTPStatusError(message, request=request, response=httpx.Response(status, request=request))


def _mock_inference(response=None, error=None):
    inference = MagicMock()
    inference.chat_completion = AsyncMock(return_value=response, side_effect=error)
    inference.close = AsyncMock()
    return inference, MagicMock(return_value=inference)


class TestPrepareTranscript:
    def test_empty_transcript_gets_introduction(self) -> None:
        messages = prepare_transcript("sys", [])
        assert messages == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": INTRODUCTION_PROMPT},
        ]

    def test_trailing_assistant_turn_gets_user_follow_up(self) -> None:
        messages = prepare_transcript("sys", [user_turn("hi"), ChatMessage(role="assistant", content="hello")])
        assert messages[-1] == {"role": "user", "content": CONTINUATION_PROMPT}
        assert len(messages) == 4

    def test_input_system_turns_dropped(self) -> None:
        messages = prepare_transcript("sys", [ChatMessage(role="system", content="old"), user_turn("hi")])
        assert [m["role"] for m in messages] == ["system", "user"]
        assert messages[0]["content"] == "sys"

    def test_only_system_turns_counts_as_empty(self) -> None:
        messages = prepare_transcript("sys", [ChatMessage(role="system", content="old")])
        assert messages[-1]["content"] == INTRODUCTION_PROMPT


class TestCleanOutput:
    def test_think_block_removed(self) -> None:
        assert clean_output("<think>let me reason\nabout it</think>\nHello!") == "Hello!"

    def test_other_tags_removed_and_newlines_collapsed(self) -> None:
        assert clean_output("<b>Hi</b>\n\n\n\nthere") == "Hi\n\nthere"

    def test_nothing_left(self) -> None:
        assert clean_output("<think>only thoughts</think>") == EMPTY_REPLY
        assert clean_output(None) == EMPTY_REPLY

    def test_unclosed_think_block_removed(self) -> None:
        assert clean_output("Sure.\n<think>The user wants X, I should") == "Sure."
        assert clean_output("<think>The user wants X, I should") == EMPTY_REPLY


class TestErrorClassification:
    def test_payment_required_is_quota(self) -> None:
        assert classify_inference_error(_status_error(402)) == ErrorKind.QUOTA_EXCEEDED

    def test_quota_message_is_quota(self) -> None:
        assert classify_inference_error(_status_error(400, "Insufficient balance")) == ErrorKind.QUOTA_EXCEEDED

    def test_too_many_requests(self) -> None:
        assert classify_inference_error(_status_error(429)) == ErrorKind.RATE_LIMITED

    def test_forbidden(self) -> None:
        assert classify_inference_error(_status_error(403)) == ErrorKind.UNAUTHORIZED

    def test_forbidden_wins_over_quota_wording(self) -> None:
        exc = _status_error(403, "Insufficient permissions for this model")
        assert classify_inference_error(exc) == ErrorKind.UNAUTHORIZED

    def test_server_error(self) -> None:
        assert classify_inference_error(_status_error(500)) == ErrorKind.UNKNOWN

    def test_connect_error(self) -> None:
        exc = httpx.ConnectError("refused", request=httpx.Request("POST", ROUTER_URL))
        assert classify_inference_error(exc) == ErrorKind.NETWORK_UNREACHABLE

    def test_timeout(self) -> None:
        assert classify_inference_error(asyncio.TimeoutError()) == ErrorKind.NETWORK_UNREACHABLE


class TestGenerate:
    @pytest.mark.asyncio
    async def test_reply_is_cleaned_and_annotated(self) -> None:
        inference, factory = _mock_inference(_completion("<think>hmm</think>Hi, I'm Qwen."))
        client = FallbackChatClient(api_key="novita-key", client_factory=factory)

        text = await client.generate([user_turn("hi")], "sys", temperature=0.8)

        assert text == f"Hi, I'm Qwen.\n\n{FALLBACK_DISCLAIMER}"
        factory.assert_called_once_with(provider="novita", api_key="novita-key", timeout=client.timeout)
        kwargs = inference.chat_completion.call_args.kwargs
        assert kwargs["model"] == client.model
        assert kwargs["max_tokens"] == 512
        assert kwargs["temperature"] == 0.8
        assert kwargs["messages"][-1] == {"role": "user", "content": "hi"}
        inference.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_http_error_becomes_provider_error(self) -> None:
        inference, factory = _mock_inference(error=_status_error(429))
        client = FallbackChatClient(api_key="novita-key", client_factory=factory)

        with pytest.raises(ProviderError) as excinfo:
            await client.generate([user_turn("hi")], "sys")

        assert excinfo.value.kind == ErrorKind.RATE_LIMITED
        assert excinfo.value.provider == "qwen"
        inference.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_slow_call_times_out(self) -> None:
        async def never_answers(**kwargs):
            await asyncio.sleep(5)

        inference, factory = _mock_inference()
        inference.chat_completion = never_answers
        client = FallbackChatClient(api_key="novita-key", timeout=0.01, client_factory=factory)

        with pytest.raises(ProviderError) as excinfo:
            await client.generate([user_turn("hi")], "sys")

        assert excinfo.value.kind == ErrorKind.NETWORK_UNREACHABLE
        inference.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_choices_is_invalid(self) -> None:
        _, factory = _mock_inference(SimpleNamespace(choices=[]))
        client = FallbackChatClient(api_key="novita-key", client_factory=factory)

        with pytest.raises(ProviderError) as excinfo:
            await client.generate([user_turn("hi")], "sys")

        assert excinfo.value.kind == ErrorKind.INVALID_RESPONSE

    def test_availability(self) -> None:
        assert FallbackChatClient(api_key="novita-key").is_available()
        assert not FallbackChatClient(api_key="").is_available()
