import asyncio
import json

import httpx
import pytest
from tenacity import wait_none

from peetle.components.audio.elevenlabs_client import ElevenLabsClient
from peetle.exceptions import SynthesisError


def _client(handler, **kwargs) -> ElevenLabsClient:
    return ElevenLabsClient(
        "test-key",
        voice_settings={"stability": 0.5, "similarity_boost": 0.5},
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.fixture
def no_backoff(monkeypatch):
    monkeypatch.setattr(ElevenLabsClient._post_tts.retry, "wait", wait_none())


def test_synthesize_posts_text_and_returns_audio():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"ID3mp3-bytes")

    audio = asyncio.run(_client(handler).synthesize("Hello there", "voice123"))

    assert audio == b"ID3mp3-bytes"
    req = seen[0]
    assert req.method == "POST"
    assert req.url.path == "/v1/text-to-speech/voice123"
    assert req.headers["xi-api-key"] == "test-key"
    assert req.headers["accept"] == "audio/mpeg"
    body = json.loads(req.content)
    assert body["text"] == "Hello there"
    assert body["model_id"] == "eleven_monolingual_v1"
    assert body["voice_settings"]["stability"] == 0.5


def test_client_error_is_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(401, json={"detail": "invalid api key"})

    with pytest.raises(SynthesisError) as exc:
        asyncio.run(_client(handler).synthesize("hi", "v"))
    assert "401" in str(exc.value)
    assert len(calls) == 1


def test_server_error_is_retried(no_backoff):
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503)
        return httpx.Response(200, content=b"audio")

    assert asyncio.run(_client(handler).synthesize("hi", "v")) == b"audio"
    assert len(calls) == 3


def test_persistent_rate_limit_gives_up(no_backoff):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(429)

    with pytest.raises(SynthesisError):
        asyncio.run(_client(handler).synthesize("hi", "v"))
    assert len(calls) == 5


def test_text_over_limit_is_rejected_without_request():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(SynthesisError):
        asyncio.run(_client(handler, max_chars=10).synthesize("x" * 11, "v"))


def test_empty_response_is_an_error():
    with pytest.raises(SynthesisError):
        asyncio.run(_client(lambda r: httpx.Response(200, content=b"")).synthesize("hi", "v"))


def test_missing_api_key():
    with pytest.raises(SynthesisError):
        ElevenLabsClient(None)

