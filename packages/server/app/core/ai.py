"""
Brand guideline extraction through an OpenAI-compatible chat completions API.

The provider is an external collaborator: its failures are condensed into
ExtractionError and surfaced as GENERATION_ERROR by the guidelines service.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from app.core.config import get_settings

log = structlog.get_logger()

# Long documents are truncated rather than chunked.
MAX_DOCUMENT_CHARS = 120_000

SECTION_KEYS = ("voice", "copyGuidelines", "visualGuidelines", "messaging")

EXTRACTION_PROMPT = """You are an expert at analyzing brand guidelines documents and extracting structured data.
All output must be in English; translate content from other languages.

Return a single JSON object with exactly these keys:
- "voice": {"personality": [adjectives], "tone": str, "writeAs": str, "audienceLevel": str}
- "copyGuidelines": {"dos": [{"rule", "example"}], "donts": [{"rule", "why"}],
  "wordChoices": [{"avoid", "prefer"}], "phrases": {"required": [...], "banned": [...]}}
- "visualGuidelines": {"colors": {...hex codes...}, "typography": {...}, "imagery": {...}, "logo": {...}}
- "messaging": {"pillars": [...], "valueProposition": str, "tagline": str, "boilerplate": str}

Extract every color (complete 6-digit hex codes), font, rule and message the document contains.
Omit nothing that is stated; invent nothing that is not."""


class ExtractionError(Exception):
    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.details = details


@dataclass
class ExtractionResult:
    voice: dict = field(default_factory=dict)
    copy_guidelines: dict = field(default_factory=dict)
    visual_guidelines: dict = field(default_factory=dict)
    messaging: dict = field(default_factory=dict)
    model: str | None = None
    tokens_used: int = 0
    raw: dict = field(default_factory=dict)


def estimate_tokens(text: str) -> int:
    """Rough prompt size: one token per four characters."""
    return max(1, (len(text) + 3) // 4)


class GuidelinesExtractor:
    def __init__(
        self,
        api_key: str,
        api_url: str,
        model: str,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self._api_url = api_url
        self._model = model
        self._timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def extract(self, document_text: str, brand_name: str) -> ExtractionResult:
        content = document_text[:MAX_DOCUMENT_CHARS]
        payload = {
            "model": self._model,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": EXTRACTION_PROMPT},
                {
                    "role": "user",
                    "content": f"Brand: {brand_name}\n\nDocument:\n{content}",
                },
            ],
        }

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout), transport=self._transport
        ) as client:
            try:
                resp = await client.post(
                    self._api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                log.error(
                    "ai.provider_error",
                    status=exc.response.status_code,
                    model=self._model,
                )
                raise ExtractionError(
                    "AI provider returned an error",
                    details={"status": exc.response.status_code, "body": exc.response.text[:500]},
                ) from exc
            except httpx.HTTPError as exc:
                log.error("ai.provider_unreachable", model=self._model, error=str(exc))
                raise ExtractionError("AI provider unreachable", details=str(exc)) from exc

        body = resp.json()
        try:
            message = body["choices"][0]["message"]["content"]
            parsed = json.loads(message)
        except (KeyError, IndexError, TypeError, json.JSONDecodeError) as exc:
            raise ExtractionError("AI provider returned malformed output", details=str(exc)) from exc

        if not isinstance(parsed, dict) or not any(parsed.get(k) for k in SECTION_KEYS):
            raise ExtractionError("No guidelines could be extracted from the document")

        usage = body.get("usage") or {}
        return ExtractionResult(
            voice=parsed.get("voice") or {},
            copy_guidelines=parsed.get("copyGuidelines") or {},
            visual_guidelines=parsed.get("visualGuidelines") or {},
            messaging=parsed.get("messaging") or {},
            model=body.get("model", self._model),
            tokens_used=int(usage.get("total_tokens") or 0),
            raw=parsed,
        )


def get_extractor() -> GuidelinesExtractor:
    """FastAPI dependency for the extraction client."""
    settings = get_settings()
    return GuidelinesExtractor(
        api_key=settings.ai_api_key,
        api_url=settings.ai_api_url,
        model=settings.ai_model,
        timeout=settings.ai_timeout_seconds,
    )
