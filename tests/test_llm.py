"""Tests for utils.llm with a mocked Anthropic client."""

import json
from unittest.mock import MagicMock, patch

import anthropic
import pytest

from utils.llm import TRUNCATION_MARKER, call_llm, get_client, parse_json_response, strip_fences


def _make_client(chunks, stop_reason="end_turn"):
    stream = MagicMock()
    stream.text_stream = iter(chunks)
    stream.get_final_message.return_value = MagicMock(stop_reason=stop_reason)
    client = MagicMock()
    client.messages.stream.return_value.__enter__.return_value = stream
    return client


def test_get_client_requires_api_key(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    with pytest.raises(RuntimeError, match="ANTHROPIC_API_KEY"):
        get_client()


def test_strip_fences():
    assert strip_fences("```json\n{\"a\": 1}\n```") == '{"a": 1}'
    assert strip_fences("  plain  ") == "plain"


def test_parse_json_response_tolerates_prose():
    assert parse_json_response('Here you go: {"a": [1, 2]} hope it helps') == {"a": [1, 2]}
    with pytest.raises(json.JSONDecodeError):
        parse_json_response("no json here")


@patch("utils.llm.get_client")
def test_call_llm_streams_text(mock_get_client):
    client = _make_client(["export ", "default 1;"])
    mock_get_client.return_value = client
    assert call_llm("system", "user", model="m", max_tokens=10, temperature=0.1) == "export default 1;"
    kwargs = client.messages.stream.call_args.kwargs
    assert kwargs["model"] == "m"
    assert kwargs["max_tokens"] == 10
    assert kwargs["temperature"] == 0.1
    assert kwargs["messages"] == [{"role": "user", "content": "user"}]


@patch("utils.llm.get_client")
def test_call_llm_json_format(mock_get_client):
    client = _make_client(['{"name": ', '"Taskly"}'])
    mock_get_client.return_value = client
    assert call_llm("system", "user", response_format="json") == {"name": "Taskly"}
    assert "Respond ONLY with valid JSON" in client.messages.stream.call_args.kwargs["system"]


@patch("utils.llm.get_client")
def test_call_llm_json_failure_returns_text(mock_get_client):
    mock_get_client.return_value = _make_client(["not json"])
    assert call_llm("system", "user", response_format="json") == "not json"


@patch("utils.llm.get_client")
def test_call_llm_marks_truncation(mock_get_client):
    mock_get_client.return_value = _make_client(["partial"], stop_reason="max_tokens")
    assert call_llm("system", "user") == "partial" + TRUNCATION_MARKER


@patch("utils.llm.time.sleep")
@patch("utils.llm.get_client")
def test_call_llm_retries_once_on_api_error(mock_get_client, mock_sleep):
    error = anthropic.APIError("overloaded", request=MagicMock(), body=None)
    client = _make_client(["ok"])
    client.messages.stream.side_effect = [error, client.messages.stream.return_value]
    mock_get_client.return_value = client
    assert call_llm("system", "user") == "ok"
    assert client.messages.stream.call_count == 2
    mock_sleep.assert_called_once_with(2)


@patch("utils.llm.time.sleep")
@patch("utils.llm.get_client")
def test_call_llm_raises_after_second_failure(mock_get_client, mock_sleep):
    error = anthropic.APIError("overloaded", request=MagicMock(), body=None)
    client = MagicMock()
    client.messages.stream.side_effect = [error, error]
    mock_get_client.return_value = client
    with pytest.raises(anthropic.APIError):
        call_llm("system", "user")
