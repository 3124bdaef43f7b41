"""
Tests for the guidelines extraction client.
"""

from __future__ import annotations

import json

import httpx
import pytest

from app.core.ai import (
    MAX_DOCUMENT_CHARS,
    ExtractionError,
    GuidelinesExtractor,
    estimate_tokens,
)


def _extractor(handler, api_key: str = "sk-test") -> GuidelinesExtractor:
    return GuidelinesExtractor(
        api_key=api_key,
        api_url="https://ai.test/v1/chat/completions",
        model="test-model",
        transport=httpx.MockTransport(handler),
    )


def _completion(content, usage=None) -> httpx.Response:
    body = {
        "model": "test-model-2024",
        "choices": [{"message": {"role": "assistant", "content": content}}],
    }
    if usage is not None:
        body["usage"] = usage
    return httpx.Response(200, json=body)


SECTIONS = {
    "voice": {"personality": ["bold"], "tone": "direct"},
    "copyGuidelines": {"dos": [{"rule": "Lead with the benefit"}]},
    "visualGuidelines": {"colors": {"primary": "#0A0A0A"}},
    "messaging": {"tagline": "Just ship it"},
}


class TestEstimateTokens:
    def test_rounds_up(self):
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    def test_minimum_one(self):
        assert estimate_tokens("") == 1


class TestGuidelinesExtractor:
    def test_configured(self):
        assert _extractor(lambda r: None).configured is True
        assert _extractor(lambda r: None, api_key="").configured is False

    async def test_extract_parses_sections(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return _completion(json.dumps(SECTIONS), usage={"total_tokens": 1234})

        result = await _extractor(handler).extract("Our brand is bold.", "Acme")

        assert result.voice == SECTIONS["voice"]
        assert result.copy_guidelines == SECTIONS["copyGuidelines"]
        assert result.visual_guidelines == SECTIONS["visualGuidelines"]
        assert result.messaging == SECTIONS["messaging"]
        assert result.model == "test-model-2024"
        assert result.tokens_used == 1234
        assert result.raw == SECTIONS

        assert captured["auth"] == "Bearer sk-test"
        body = captured["body"]
        assert body["model"] == "test-model"
        assert body["response_format"] == {"type": "json_object"}
        assert body["messages"][1]["content"].startswith("Brand: Acme\n\nDocument:\n")

    async def test_long_documents_are_truncated(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return _completion(json.dumps(SECTIONS))

        await _extractor(handler).extract("x" * (MAX_DOCUMENT_CHARS + 500), "Acme")
        user_message = captured["body"]["messages"][1]["content"]
        assert user_message.count("x") == MAX_DOCUMENT_CHARS

    async def test_partial_sections_default_to_empty(self):
        handler = lambda request: _completion(json.dumps({"voice": {"tone": "calm"}}))
        result = await _extractor(handler).extract("text", "Acme")
        assert result.voice == {"tone": "calm"}
        assert result.messaging == {}
        assert result.tokens_used == 0

    @pytest.mark.parametrize(
        "content",
        ["not json", json.dumps({"voice": {}, "messaging": None}), json.dumps(["voice"])],
    )
    async def test_unusable_output(self, content):
        with pytest.raises(ExtractionError):
            await _extractor(lambda request: _completion(content)).extract("text", "Acme")

    async def test_missing_choices(self):
        handler = lambda request: httpx.Response(200, json={"choices": []})
        with pytest.raises(ExtractionError, match="malformed"):
            await _extractor(handler).extract("text", "Acme")

    async def test_provider_error_status(self):
        handler = lambda request: httpx.Response(429, text="rate limited")
        with pytest.raises(ExtractionError) as exc_info:
            await _extractor(handler).extract("text", "Acme")
        assert exc_info.value.details == {"status": 429, "body": "rate limited"}

    async def test_provider_unreachable(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(ExtractionError, match="unreachable"):
            await _extractor(handler).extract("text", "Acme")
