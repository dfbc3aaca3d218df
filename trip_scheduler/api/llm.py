"""LLM helper functions for the trip scheduler.

Drafts itinerary proposals via OpenAI Chat Completions. The reply is parsed
as JSON and handed back untouched; turning it into a schedule is the
converter's job.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from openai import OpenAI

from trip_scheduler.api.config import get_chat_model, get_openai_api_key

logger = logging.getLogger(__name__)

_client: Optional[OpenAI] = None


def _get_client() -> OpenAI:
    """Return a cached OpenAI client."""
    global _client
    if _client is None:
        _client = OpenAI(api_key=get_openai_api_key())
    return _client


# ---------------------------------------------------------------------------
# Prompt construction helpers
# ---------------------------------------------------------------------------

def _build_prompt(destination: str, days: int, travelers: int = 1,
                  budget: Optional[float] = None) -> str:
    budget_line = f"Total budget: {budget:.0f} USD. " if budget else ""
    return (
        "You are a helpful travel planner. "
        f"Create a {days}-day itinerary for {destination} for {travelers} traveler(s). "
        f"{budget_line}"
        "Reply in strict JSON with the schema: "
        "{\n  \"destination\": <str>, \"duration\": <int>, \"startDate\": <YYYY-MM-DD|null>,"
        " \"endDate\": <YYYY-MM-DD|null>, \"travelers\": <int>, \"totalBudget\": <number|null>,\n"
        "  \"days\": [\n    {\n      \"day\": <int>, \"date\": <YYYY-MM-DD|null>, \"title\": <str>,"
        " \"description\": <str>,\n      \"activities\": [\n        {\n"
        "          \"time\": \"HH:MM\", \"title\": <str>, \"description\": <str>,"
        " \"duration\": \"<N hours|N min>\", \"location\": <str>, \"type\": <str>,"
        " \"price\": <number|null>, \"tips\": [<str>]\n        }\n      ],\n"
        "      \"accommodation\": {\"name\": <str>, \"type\": <str>, \"price\": <number>,"
        " \"location\": <str>} | null,\n"
        "      \"meals\": [{\"type\": \"breakfast|lunch|dinner\", \"venue\": <str>,"
        " \"cuisine\": <str>, \"price\": <number>}]\n    }\n  ],\n"
        "  \"highlights\": [<str>], \"tips\": [<str>], \"estimatedTotalCost\": <number|null>\n}"
    )


def _parse_response(content: str) -> Dict[str, Any]:
    """Extract the proposal object from the model's raw JSON string."""
    try:
        payload = json.loads(content)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse LLM response: %s", exc)
        raise
    if not isinstance(payload, dict):
        raise ValueError("LLM response is not a JSON object")
    return payload


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def generate_itinerary_proposal(destination: str, days: int, travelers: int = 1,
                                budget: Optional[float] = None) -> Dict[str, Any]:
    """Ask the model for a day-by-day proposal and return it as a dict."""

    model = get_chat_model()
    messages = [
        {"role": "system", "content": "You are an expert travel planner. Reply with JSON only."},
        {"role": "user", "content": _build_prompt(destination, days, travelers, budget)},
    ]

    logger.debug(
        "Calling OpenAI ChatCompletion: model=%s destination=%s days=%d",
        model,
        destination,
        days,
    )

    response = _get_client().chat.completions.create(
        model=model,
        messages=messages,
        temperature=0.2,
        max_tokens=4096,
        response_format={"type": "json_object"},
    )

    raw_content: str = response.choices[0].message.content or ""
    return _parse_response(raw_content)
