"""AI summary parsing and the static fallback."""

from __future__ import annotations

from types import SimpleNamespace

from wealthbook.services.summarizer import FALLBACK_SUMMARY, InsightSummarizer, parse_summary


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(completions: FakeCompletions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def test_parse_strips_code_fences():
    summary = parse_summary('```json\n{"headline": "All good", "points": ["a", " b "]}\n```')

    assert summary is not None
    assert summary.headline == "All good"
    assert summary.points == ["a", "b"]
    assert summary.fallback is False


def test_parse_rejects_missing_fields():
    assert parse_summary('{"headline": "x"}') is None
    assert parse_summary('{"headline": "", "points": []}') is None
    assert parse_summary('{"headline": "x", "points": [1]}') is None
    assert parse_summary("not json") is None
    assert parse_summary("[1, 2]") is None
    assert parse_summary(None) is None


def test_summarize_uses_client_reply():
    completions = FakeCompletions('{"headline": "Spending is up", "points": ["Dining doubled"]}')
    summarizer = InsightSummarizer(_client(completions), model="test-model")

    summary = summarizer.summarize("alerts", {"generated": 1})

    assert summary.headline == "Spending is up"
    assert completions.requests[0]["model"] == "test-model"
    assert '"generated": 1' in completions.requests[0]["messages"][1]["content"]


def test_summarize_falls_back_on_bad_reply():
    summarizer = InsightSummarizer(_client(FakeCompletions("I think you are fine.")))

    assert summarizer.summarize("alerts", {}) is FALLBACK_SUMMARY


def test_summarize_falls_back_on_client_error():
    summarizer = InsightSummarizer(_client(FakeCompletions(error=RuntimeError("rate limited"))))

    assert summarizer.summarize("alerts", {}) is FALLBACK_SUMMARY


def test_summarize_without_client_returns_fallback():
    summary = InsightSummarizer().summarize("alerts", {})

    assert summary is FALLBACK_SUMMARY
    assert summary.to_dict()["fallback"] is True
