"""Post-call transcript analysis built on Gemini."""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Dict, Protocol

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from ..core.config import Settings
from ..models.call import Sentiment

SYSTEM_PROMPT = (
    "You are an AI assistant that analyzes call transcripts. Provide a concise summary, identify the "
    "sentiment (positive/neutral/negative), extract lead information (name, email, company, interest, "
    "budget), and list action items."
)

_SENTIMENT_PATTERN = re.compile(r"sentiment[\s:*_\-]+(positive|neutral|negative)", re.IGNORECASE)

logger = logging.getLogger(__name__)


class SummarizationError(RuntimeError):
    """Raised when no transcript analysis could be produced."""


class Summarizer(Protocol):
    async def summarize(self, transcript: str) -> str: ...


def build_prompt(transcript: str) -> str:
    lines = [
        "Analyze this call transcript and provide:",
        "1. Summary (2-3 sentences)",
        "2. Sentiment (positive/neutral/negative)",
        "3. Lead info (name, email, company, interest, budget if mentioned)",
        "4. Action items",
        "",
        "Transcript:",
        transcript,
    ]
    return "\n".join(lines)


def parse_sentiment(analysis: str | None) -> Sentiment | None:
    """Pull the sentiment label out of free-form analysis text, if present."""

    if not analysis:
        return None
    match = _SENTIMENT_PATTERN.search(analysis)
    if match is None:
        return None
    return Sentiment(match.group(1).lower())


class GeminiSummarizer:
    """Summarize transcripts with the configured Gemini model and its fallbacks."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._configured = False
        self._model_cache: Dict[str, genai.GenerativeModel] = {}

    def _has_api_key(self) -> bool:
        return bool(self._settings.gemini_api_key.strip())

    def _get_model(self, name: str) -> genai.GenerativeModel:
        """Return a cached Gemini model instance."""

        if not self._configured:
            genai.configure(api_key=self._settings.gemini_api_key)
            self._configured = True

        model_name = name.strip()
        if not model_name:
            raise RuntimeError("Gemini model name was empty")

        if model_name not in self._model_cache:
            self._model_cache[model_name] = genai.GenerativeModel(model_name, system_instruction=SYSTEM_PROMPT)
        return self._model_cache[model_name]

    def _candidates(self) -> list[str]:
        candidates: list[str] = []
        seen: set[str] = set()
        for candidate in (self._settings.gemini_model, *self._settings.gemini_model_fallbacks):
            if candidate and candidate not in seen:
                candidates.append(candidate)
                seen.add(candidate)
        return candidates

    async def summarize(self, transcript: str) -> str:
        """Return the model's free-text analysis of ``transcript``."""

        if not self._has_api_key():
            raise SummarizationError("GEMINI_API_KEY is missing")

        loop = asyncio.get_running_loop()
        prompt = build_prompt(transcript)
        last_error: Exception | None = None

        for model_name in self._candidates():
            def _run_inference(current_model: str = model_name) -> str:
                response = self._get_model(current_model).generate_content(prompt)
                text = getattr(response, "text", "") or ""
                return text.strip()

            try:
                result = await asyncio.wait_for(
                    loop.run_in_executor(None, _run_inference),
                    timeout=self._settings.summary_timeout_seconds,
                )
            except google_exceptions.NotFound as exc:
                logger.warning("Gemini model %s not available: %s", model_name, exc)
                self._model_cache.pop(model_name, None)
                last_error = exc
                continue
            except asyncio.TimeoutError as exc:
                logger.warning("Gemini model %s timed out after %ss", model_name, self._settings.summary_timeout_seconds)
                last_error = exc
                continue
            except Exception as exc:  # noqa: BLE001
                logger.exception("Gemini generate_content failed for %s", model_name)
                last_error = exc
                continue

            if result:
                return result
            logger.warning("Gemini model %s returned an empty analysis", model_name)

        raise SummarizationError("No Gemini models produced an analysis") from last_error
