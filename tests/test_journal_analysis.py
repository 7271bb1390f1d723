import json
from types import SimpleNamespace

import openai
import pytest

from app.rhub.modules.journal.analysis import analyze_entry, fallback_analysis, parse_ai_response
from app.rhub.modules.journal.service import word_cloud


def test_word_cloud_sizes_and_bands():
    cloud = word_cloud({"sleep": 1, "work": 5, "family": 3})
    assert [(t["tag"], t["fontSize"], t["band"]) for t in cloud] == [
        ("work", 32, "high"),
        ("family", 22, "medium"),
        ("sleep", 12, "low"),
    ]


def test_word_cloud_single_frequency_is_low_and_sorted_by_tag():
    cloud = word_cloud({"b": 2, "a": 2})
    assert [(t["tag"], t["fontSize"], t["band"]) for t in cloud] == [("a", 12, "low"), ("b", 12, "low")]


def test_word_cloud_scales_over_tags_dropped_by_limit():
    cloud = word_cloud({"a": 3, "b": 2, "c": 1}, limit=2)
    assert [(t["tag"], t["fontSize"], t["band"]) for t in cloud] == [("a", 32, "high"), ("b", 22, "medium")]
    assert word_cloud({}) == []


def test_fallback_negated_positive_flips_emotion():
    result = fallback_analysis("Monday", "I am not happy at work today")
    assert "happy" not in result.emotions
    assert "sad" in result.emotions
    assert "unhappy" in result.emotions
    assert "work" in result.suggested_tags
    assert result.sentiment.positive == 0
    assert result.sentiment.negative == 100


def test_fallback_pads_sparse_entries():
    result = fallback_analysis("Day", "Something hard happened")
    assert result.suggested_tags == ["journal", "reflection", "concerned", "personal development", "brief"]
    assert (result.sentiment.positive, result.sentiment.negative, result.sentiment.neutral) == (0, 0, 0)


def test_fallback_positive_entry():
    result = fallback_analysis("Great", "I feel happy and grateful after exercise with friends.")
    assert {"happy", "grateful"} <= set(result.emotions)
    assert {"exercise", "friends"} <= set(result.topics)
    assert result.sentiment.positive == 100
    assert len(result.suggested_tags) <= 8


def test_fallback_caps_tags_at_eight():
    text = "happy sad angry anxious stressed worried excited calm work family health sleep"
    assert len(fallback_analysis("Everything", text).suggested_tags) == 8


def test_parse_ai_response_normalizes():
    raw = json.dumps(
        {
            "suggestedTags": ["Work", "Stress", " "],
            "analysis": "Busy week.",
            "emotions": ["stressed"],
            "topics": ["work"],
            "sentiment": {"positive": 10, "negative": 70, "neutral": 20},
        }
    )
    result = parse_ai_response(raw)
    assert result.suggested_tags == ["work", "stress"]
    assert result.sentiment.negative == 70


def test_parse_ai_response_rejects_garbage():
    with pytest.raises(ValueError):
        parse_ai_response("not json")
    with pytest.raises(ValueError):
        parse_ai_response(json.dumps({"suggestedTags": []}))


class _FakeOpenAI:
    content = "{}"
    error: Exception | None = None

    def __init__(self, **kwargs):
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        if self.error is not None:
            raise self.error
        assert kwargs["response_format"] == {"type": "json_object"}
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))])


def test_analyze_entry_uses_provider_when_configured(monkeypatch):
    class Fake(_FakeOpenAI):
        content = json.dumps({"suggestedTags": ["gratitude", "family"], "analysis": "Warm.", "sentiment": {"positive": 90}})

    monkeypatch.setattr(openai, "OpenAI", Fake)
    result = analyze_entry("Sunday", "Dinner with family", api_key="sk-test")
    assert result.suggested_tags == ["gratitude", "family"]
    assert result.analysis == "Warm."


def test_analyze_entry_falls_back_on_provider_error(monkeypatch):
    class Broken(_FakeOpenAI):
        error = openai.OpenAIError("quota exceeded")

    monkeypatch.setattr(openai, "OpenAI", Broken)
    result = analyze_entry("Day", "Something hard happened", api_key="sk-test")
    assert result.suggested_tags == fallback_analysis("Day", "Something hard happened").suggested_tags


def test_analyze_entry_without_key_skips_provider(monkeypatch):
    class Exploding(_FakeOpenAI):
        def __init__(self, **kwargs):
            raise AssertionError("provider must not be called without a key")

    monkeypatch.setattr(openai, "OpenAI", Exploding)
    assert analyze_entry("Day", "Something hard happened").suggested_tags
