"""Tests for model clients and JSON scanning of model output."""
from __future__ import annotations

from types import SimpleNamespace

import pytest

from lexingest.errors import ExtractionTimeout, MalformedModelResponse, ModelRefused
from lexingest.llm import (
    AnthropicClient,
    MockLLMClient,
    close_truncated_array,
    complete_with_deadline,
    extract_json_array,
    extract_json_object,
)


class FakeMessages:
    def __init__(self, response):
        self.response = response
        self.kwargs: dict = {}

    async def create(self, **kwargs):
        self.kwargs = kwargs
        return self.response


def fake_sdk(content, stop_reason: str = "end_turn"):
    response = SimpleNamespace(
        content=content,
        stop_reason=stop_reason,
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
    )
    return SimpleNamespace(messages=FakeMessages(response))


class TestAnthropicClient:
    @pytest.mark.asyncio
    async def test_returns_text_and_passes_settings(self):
        sdk = fake_sdk([SimpleNamespace(type="text", text='{"ok": true}')])
        client = AnthropicClient(client=sdk, model="claude-sonnet-4-5")

        text = await client.complete("system", "user", temperature=0.3, max_tokens=16000)

        assert text == '{"ok": true}'
        assert sdk.messages.kwargs["model"] == "claude-sonnet-4-5"
        assert sdk.messages.kwargs["system"] == "system"
        assert sdk.messages.kwargs["temperature"] == 0.3
        assert sdk.messages.kwargs["max_tokens"] == 16000

    @pytest.mark.asyncio
    async def test_empty_system_prompt_is_omitted(self):
        sdk = fake_sdk([SimpleNamespace(type="text", text="x")])
        await AnthropicClient(client=sdk).complete("", "user")
        assert "system" not in sdk.messages.kwargs

    @pytest.mark.asyncio
    async def test_refusal(self):
        sdk = fake_sdk([], stop_reason="refusal")
        with pytest.raises(ModelRefused):
            await AnthropicClient(client=sdk).complete("", "user")

    @pytest.mark.asyncio
    async def test_non_text_block_is_malformed(self):
        sdk = fake_sdk([SimpleNamespace(type="tool_use")])
        with pytest.raises(MalformedModelResponse, match="Unexpected AI response type"):
            await AnthropicClient(client=sdk).complete("", "user")


class TestMockClient:
    @pytest.mark.asyncio
    async def test_queue_then_substring_then_default(self):
        client = MockLLMClient(responses={"slots": "matched"}, queue=["first"], default="fallback")

        assert await client.complete("", "anything") == "first"
        assert await client.complete("", "make slots") == "matched"
        assert await client.complete("", "other") == "fallback"
        assert len(client.call_history) == 3

    @pytest.mark.asyncio
    async def test_deadline(self):
        with pytest.raises(ExtractionTimeout):
            await complete_with_deadline(MockLLMClient(delay=0.5), system_prompt="", user_message="u", timeout=0.01)


class TestExtractJsonObject:
    def test_greedy_span_from_first_to_last_brace(self):
        assert extract_json_object('prefix {"a": {"b": 1}} suffix') == {"a": {"b": 1}}

    def test_no_braces(self):
        with pytest.raises(MalformedModelResponse):
            extract_json_object("no json here")

    def test_invalid_json_keeps_preview(self):
        with pytest.raises(MalformedModelResponse) as exc_info:
            extract_json_object("{not json}")
        assert exc_info.value.preview == "{not json}"


class TestExtractJsonArray:
    def test_fenced_block(self):
        assert extract_json_array('text\n```json\n[{"a": 1}]\n```\nmore') == [{"a": 1}]

    def test_bare_array(self):
        assert extract_json_array('Result: [1, 2, 3]') == [1, 2, 3]

    def test_truncated_fenced_block(self):
        assert extract_json_array('```json\n[{"a": 1}, {"b": {"c": 2}') == [{"a": 1}, {"b": {"c": 2}}]

    def test_object_is_not_an_array(self):
        with pytest.raises(MalformedModelResponse):
            extract_json_array('```json\n{"a": 1}\n```')

    def test_close_truncated_array(self):
        assert close_truncated_array('[{"a": {"b": 1') == '[{"a": {"b": 1}}]'
