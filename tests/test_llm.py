import json
from unittest.mock import MagicMock, patch

import pytest

from trip_scheduler.api import llm


def _completion(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


@pytest.fixture
def mock_client():
    client = MagicMock()
    with patch.object(llm, "_get_client", return_value=client):
        yield client


def test_generate_returns_parsed_proposal(mock_client, paris_proposal, monkeypatch):
    monkeypatch.setenv("OPENAI_CHAT_MODEL", "gpt-test")
    mock_client.chat.completions.create.return_value = _completion(json.dumps(paris_proposal))

    proposal = llm.generate_itinerary_proposal("Paris", 1, travelers=2, budget=1500)

    assert proposal == paris_proposal
    kwargs = mock_client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-test"
    assert kwargs["response_format"] == {"type": "json_object"}
    prompt = kwargs["messages"][-1]["content"]
    assert "1-day itinerary for Paris for 2 traveler(s)" in prompt
    assert "Total budget: 1500 USD" in prompt


def test_invalid_json_is_raised(mock_client):
    mock_client.chat.completions.create.return_value = _completion("Sure! Here's a plan")
    with pytest.raises(json.JSONDecodeError):
        llm.generate_itinerary_proposal("Paris", 2)


def test_non_object_reply_is_rejected(mock_client):
    mock_client.chat.completions.create.return_value = _completion("[1, 2, 3]")
    with pytest.raises(ValueError):
        llm.generate_itinerary_proposal("Paris", 2)


def test_missing_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setattr(llm, "_client", None)
    with pytest.raises(ValueError):
        llm._get_client()
