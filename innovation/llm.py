"""Async LLM client shared by the analysis, import and recommendation modules.

Every call sends a system prompt plus a user prompt and expects a single JSON
object back. Model output is scraped on a best-effort basis: a fenced
```json block wins, otherwise the outermost ``{...}`` span is parsed.
"""
from __future__ import annotations

import json
import logging
import os
import re
from typing import Any

from innovation.config import get_settings

log = logging.getLogger(__name__)

_FENCED_RE = re.compile(r"```(?:json)?\s*(\{.*\})\s*```", re.DOTALL)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)

DEFAULT_MODELS = {
    "gemini": "gemini-2.0-flash",
    "anthropic": "claude-haiku-4-5-20251001",
    "openai": "gpt-4o-mini",
    "openai_compatible": "gpt-4o-mini",
}


class LLMCallError(Exception):
    """LLM call failed or returned unparseable output."""
    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


def extract_json(text: str) -> dict[str, Any]:
    """Pull the JSON object out of free-form model output."""
    text = (text or "").strip()
    fenced = _FENCED_RE.search(text)
    if fenced:
        candidate = fenced.group(1)
    else:
        m = _OBJECT_RE.search(text)
        if not m:
            raise LLMCallError(f"No JSON object in LLM response: {text[:200]}", retryable=False)
        candidate = m.group(0)
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise LLMCallError(f"LLM returned invalid JSON: {candidate[:200]}", retryable=False) from exc
    if not isinstance(parsed, dict):
        raise LLMCallError("LLM returned JSON that is not an object", retryable=False)
    return parsed


class LLMClient:
    """Unified async LLM client supporting Gemini, Anthropic and OpenAI."""

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
    ):
        settings = get_settings()
        self.provider = provider or settings.llm_provider
        self.model = model or settings.llm_model
        self._api_key = api_key
        self._base_url = base_url
        self._client: Any = None
        self._init_client()

    def _init_client(self) -> None:
        if self.provider == "gemini":
            from google import genai
            self.model = self.model or DEFAULT_MODELS["gemini"]
            self._client = genai.Client(
                api_key=self._api_key or os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")
            )
        elif self.provider == "anthropic":
            import anthropic
            self.model = self.model or DEFAULT_MODELS["anthropic"]
            self._client = anthropic.AsyncAnthropic(
                api_key=self._api_key or os.environ.get("ANTHROPIC_API_KEY")
            )
        elif self.provider in ("openai", "openai_compatible"):
            import openai
            self.model = self.model or DEFAULT_MODELS["openai"]
            kwargs: dict[str, Any] = {}
            key = self._api_key or os.environ.get("OPENAI_API_KEY")
            if key:
                kwargs["api_key"] = key
            url = self._base_url or os.environ.get("OPENAI_BASE_URL")
            if url:
                kwargs["base_url"] = url
            self._client = openai.AsyncOpenAI(**kwargs)
        else:
            raise ValueError(f"Unknown LLM provider: {self.provider!r}")

    @property
    def source_tag(self) -> str:
        """Label stored on rows produced by this client, e.g. ``gemini_ai``."""
        return f"{self.provider}_ai"

    async def call(self, system: str, user: str) -> dict[str, Any]:
        """Send system+user message to the LLM, return parsed JSON."""
        try:
            if self.provider == "gemini":
                response = await self._client.aio.models.generate_content(
                    model=self.model,
                    contents=user,
                    config={
                        "system_instruction": system,
                        "response_mime_type": "application/json",
                        "max_output_tokens": 4096,
                    },
                )
                text = response.text or ""
            elif self.provider == "anthropic":
                response = await self._client.messages.create(
                    model=self.model,
                    max_tokens=4096,
                    system=system,
                    messages=[{"role": "user", "content": user}],
                )
                text = response.content[0].text
            else:
                response = await self._client.chat.completions.create(
                    model=self.model,
                    max_tokens=4096,
                    response_format={"type": "json_object"},
                    messages=[
                        {"role": "system", "content": system},
                        {"role": "user", "content": user},
                    ],
                )
                text = response.choices[0].message.content or "{}"
        except LLMCallError:
            raise
        except Exception as exc:
            log.warning("LLM call to %s/%s failed: %s", self.provider, self.model, exc)
            raise LLMCallError(f"LLM API call failed: {exc}", retryable=True) from exc

        log.debug("LLM response (%s/%s): %s", self.provider, self.model, text[:500])
        return extract_json(text)
