import asyncio
import time
from types import SimpleNamespace

import pytest
from google.api_core import exceptions as google_exceptions

from app.core.config import Settings
from app.models.call import Sentiment
from app.services import summarizer


@pytest.mark.parametrize(
    ("analysis", "expected"),
    [
        ("Summary: fine.\nSentiment: positive\nAction items: none", Sentiment.POSITIVE),
        ("SENTIMENT: Negative", Sentiment.NEGATIVE),
        ("2. **Sentiment:** neutral", Sentiment.NEUTRAL),
        ("sentiment positive overall", Sentiment.POSITIVE),
        ("The caller seemed happy.", None),
        ("Sentiment: mixed", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_sentiment(analysis, expected) -> None:
    assert summarizer.parse_sentiment(analysis) is expected


def test_build_prompt_embeds_transcript() -> None:
    prompt = summarizer.build_prompt("user: hi\nassistant: hello")

    assert prompt.endswith("Transcript:\nuser: hi\nassistant: hello")
    assert "Sentiment (positive/neutral/negative)" in prompt


def _settings(**overrides) -> Settings:
    values = {"gemini_api_key": "key", "gemini_model": "primary", "gemini_model_fallbacks": ["backup"]}
    values.update(overrides)
    return Settings(_env_file=None, **values)


class _Model:
    def __init__(self, text: str = "", error: Exception | None = None, delay: float = 0.0) -> None:
        self.text = text
        self.error = error
        self.delay = delay
        self.prompts: list[str] = []

    def generate_content(self, prompt: str):
        self.prompts.append(prompt)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


@pytest.mark.asyncio
async def test_summarize_requires_api_key() -> None:
    service = summarizer.GeminiSummarizer(_settings(gemini_api_key=""))

    with pytest.raises(summarizer.SummarizationError):
        await service.summarize("user: hi")


@pytest.mark.asyncio
async def test_summarize_falls_back_when_model_missing(monkeypatch) -> None:
    models = {
        "primary": _Model(error=google_exceptions.NotFound("gone")),
        "backup": _Model(text="  Summary: ok. Sentiment: neutral  "),
    }
    service = summarizer.GeminiSummarizer(_settings())
    monkeypatch.setattr(service, "_get_model", lambda name: models[name])

    result = await service.summarize("user: hi")

    assert result == "Summary: ok. Sentiment: neutral"
    assert models["backup"].prompts[0].endswith("user: hi")


@pytest.mark.asyncio
async def test_summarize_raises_when_every_model_fails(monkeypatch) -> None:
    models = {"primary": _Model(error=RuntimeError("boom")), "backup": _Model(text="")}
    service = summarizer.GeminiSummarizer(_settings())
    monkeypatch.setattr(service, "_get_model", lambda name: models[name])

    with pytest.raises(summarizer.SummarizationError):
        await service.summarize("user: hi")


@pytest.mark.asyncio
async def test_summarize_times_out_slow_models(monkeypatch) -> None:
    models = {"primary": _Model(text="late", delay=0.3), "backup": _Model(text="Sentiment: positive")}
    service = summarizer.GeminiSummarizer(_settings(summary_timeout_seconds=0.05))
    monkeypatch.setattr(service, "_get_model", lambda name: models[name])

    result = await service.summarize("user: hi")

    assert result == "Sentiment: positive"
    await asyncio.sleep(0.3)  # let the abandoned executor thread finish
