import pytest

from cip.classifier.gemini import GeminiClient, extract_json_string, reply_text
from cip.config import Settings


def test_extract_json_plain():
    assert extract_json_string('{"type_id": 1}') == '{"type_id": 1}'


def test_extract_json_strips_code_fences():
    text = '```json\n{"type_id": 2, "confidence": 0.8}\n```'
    assert extract_json_string(text) == '{"type_id": 2, "confidence": 0.8}'


def test_extract_json_from_surrounding_prose():
    text = 'Sure! Here it is: {"type_id": 3} Hope that helps.'
    assert extract_json_string(text) == '{"type_id": 3}'


def test_extract_json_rejects_garbage():
    with pytest.raises(ValueError):
        extract_json_string("no json here")
    with pytest.raises(ValueError):
        extract_json_string("{not: valid}")


def test_client_requires_api_key():
    with pytest.raises(ValueError):
        GeminiClient(Settings(_env_file=None, google_api_key=None))


def test_reply_text_joins_parts():
    payload = {"candidates": [{"content": {"parts": [{"text": '{"type_id":'}, {"text": " 1}"}]}}]}
    assert reply_text(payload) == '{"type_id":\n 1}'


def test_reply_text_reports_blocked_prompt():
    with pytest.raises(ValueError, match="SAFETY"):
        reply_text({"promptFeedback": {"blockReason": "SAFETY"}})


def test_reply_text_without_text_parts():
    with pytest.raises(ValueError, match="MAX_TOKENS"):
        reply_text({"candidates": [{"content": {"parts": []}, "finishReason": "MAX_TOKENS"}]})


def test_endpoint_uses_configured_model():
    client = GeminiClient(
        Settings(
            _env_file=None,
            google_api_key="key",
            gemini_api_base_url="https://example.test/v1beta/",
            gemini_model_id="gemini-test",
        )
    )
    assert client.endpoint == "https://example.test/v1beta/models/gemini-test:generateContent"
