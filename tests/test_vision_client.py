import asyncio
import json
import httpx
import pytest
import respx
from ticket_scanner.core.errors import ConfigurationError, ExternalServiceError
from ticket_scanner.services.vision import VisionClient

BASE_URL = "https://llm.example.com/api/v1"


def make_client(api_key="test-key"):
    return VisionClient(api_key=api_key, base_url=BASE_URL + "/", model="test/vision-model", timeout=5)


def completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


@respx.mock
def test_complete_posts_openai_style_request():
    route = respx.post(f"{BASE_URL}/chat/completions").mock(
        return_value=httpx.Response(200, json=completion("90"))
    )

    reply = asyncio.run(make_client().complete("Which way?", ["data:image/png;base64,aW1n"], max_tokens=10))

    assert reply == "90"
    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer test-key"
    body = json.loads(request.content)
    assert body["model"] == "test/vision-model"
    assert body["max_tokens"] == 10
    assert body["messages"][0]["content"] == [
        {"type": "text", "text": "Which way?"},
        {"type": "image_url", "image_url": {"url": "data:image/png;base64,aW1n"}},
    ]


@respx.mock
def test_complete_joins_content_parts():
    respx.post(f"{BASE_URL}/chat/completions").mock(
        return_value=httpx.Response(200, json=completion([{"type": "text", "text": "{\"a\": "}, {"type": "text", "text": "1}"}]))
    )
    assert asyncio.run(make_client().complete("p", [])) == '{"a": 1}'


@respx.mock
def test_complete_empty_content_returns_empty_string():
    respx.post(f"{BASE_URL}/chat/completions").mock(return_value=httpx.Response(200, json=completion(None)))
    assert asyncio.run(make_client().complete("p", [])) == ""


@respx.mock
def test_http_error_becomes_external_service_error():
    respx.post(f"{BASE_URL}/chat/completions").mock(
        return_value=httpx.Response(429, json={"error": {"message": "Rate limit exceeded"}})
    )
    with pytest.raises(ExternalServiceError) as exc_info:
        asyncio.run(make_client().complete("p", []))
    assert "429" in exc_info.value.message
    assert "Rate limit exceeded" in exc_info.value.message


@respx.mock
def test_transport_error_becomes_external_service_error():
    respx.post(f"{BASE_URL}/chat/completions").mock(side_effect=httpx.ConnectError("refused"))
    with pytest.raises(ExternalServiceError):
        asyncio.run(make_client().complete("p", []))


@respx.mock
def test_unexpected_body_becomes_external_service_error():
    respx.post(f"{BASE_URL}/chat/completions").mock(return_value=httpx.Response(200, json={"choices": []}))
    with pytest.raises(ExternalServiceError):
        asyncio.run(make_client().complete("p", []))


def test_missing_key_is_a_configuration_error():
    client = make_client(api_key=None)
    assert client.configured is False
    with pytest.raises(ConfigurationError):
        asyncio.run(client.complete("p", []))


def test_from_settings():
    class _Settings:
        openrouter_api_key = "k"
        llm_base_url = "https://openrouter.ai/api/v1"
        llm_model = "google/gemini-2.5-flash"
        llm_timeout_seconds = 30.0

    client = VisionClient.from_settings(_Settings())
    assert client.configured
    assert client.model == "google/gemini-2.5-flash"
    assert client.timeout == 30.0
