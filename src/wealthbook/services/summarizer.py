"""Natural-language summaries through the OpenAI chat API.

Never on the critical path: any client, transport or parsing failure yields
the static fallback summary.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Optional

import openai

from ..logging_config import get_logger

logger = get_logger("summarizer")

_FENCE = re.compile(r"```(?:json)?\s*|\s*```", re.IGNORECASE)

SYSTEM_PROMPT = (
    "You are a concise personal-finance assistant. "
    'Respond ONLY with JSON of the form {"headline": "...", "points": ["...", "..."]}. '
    "No markdown."
)


@dataclass(frozen=True)
class Summary:
    headline: str
    points: list[str] = field(default_factory=list)
    fallback: bool = False

    def to_dict(self) -> dict:
        return {"headline": self.headline, "points": list(self.points), "fallback": self.fallback}


FALLBACK_SUMMARY = Summary(
    headline="Your latest numbers are ready.",
    points=["Review the details below; an automated summary is not available right now."],
    fallback=True,
)


def parse_summary(text: Optional[str]) -> Optional[Summary]:
    """Decode a model reply into a :class:`Summary`, or None when malformed."""

    if not text:
        return None
    cleaned = _FENCE.sub("", text).strip()
    try:
        payload = json.loads(cleaned)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    headline = payload.get("headline")
    points = payload.get("points")
    if not isinstance(headline, str) or not headline.strip():
        return None
    if not isinstance(points, list) or not all(isinstance(p, str) for p in points):
        return None
    return Summary(headline=headline.strip(), points=[p.strip() for p in points if p.strip()])


class InsightSummarizer:
    def __init__(
        self,
        client: Optional[Any] = None,
        *,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        timeout: float = 15.0,
    ):
        if client is None and api_key:
            client = openai.OpenAI(api_key=api_key, timeout=timeout)
        self.client = client
        self.model = model

    def summarize(self, kind: str, facts: dict) -> Summary:
        if self.client is None:
            return FALLBACK_SUMMARY
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": f"Summarise this {kind} for the user:\n{json.dumps(facts, default=str)}",
                    },
                ],
                max_tokens=400,
                temperature=0.3,
            )
            text = response.choices[0].message.content
        except Exception:  # openai raises transport, auth and rate-limit errors alike
            logger.warning("Summary request failed", extra={"kind": kind}, exc_info=True)
            return FALLBACK_SUMMARY

        summary = parse_summary(text)
        if summary is None:
            logger.info("Summary reply was not usable", extra={"kind": kind})
            return FALLBACK_SUMMARY
        return summary
