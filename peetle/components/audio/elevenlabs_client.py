import asyncio
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ...exceptions import SynthesisError
from ...utils.logger import logger

DEFAULT_BASE_URL = "https://api.elevenlabs.io"
MAX_TEXT_CHARS = 5000


def _is_transient(exc: BaseException) -> bool:
    """接続エラー・タイムアウト・429/5xx のみリトライ対象とする。"""
    if isinstance(exc, (httpx.RequestError, asyncio.TimeoutError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


_retry_policy = retry(
    stop=stop_after_attempt(5),  # 最大5回リトライ
    wait=wait_exponential(multiplier=1, min=1, max=10),  # 指数バックオフ
    retry=retry_if_exception(_is_transient),
    reraise=True,  # リトライ回数を超えたら例外を再発生
)


class ElevenLabsClient:
    """Minimal async client for the ElevenLabs text-to-speech API."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = DEFAULT_BASE_URL,
        model_id: str = "eleven_monolingual_v1",
        voice_settings: Optional[Dict[str, Any]] = None,
        timeout: float = 30.0,
        max_chars: int = MAX_TEXT_CHARS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise SynthesisError(
                "ElevenLabs API key is required. Set ELEVENLABS_API_KEY or voice.api_key."
            )
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model_id = model_id
        self.voice_settings = voice_settings or {}
        self.timeout = timeout
        self.max_chars = max_chars
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    @_retry_policy
    async def _post_tts(self, text: str, voice_id: str) -> bytes:
        payload = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": self.voice_settings,
        }
        async with self._client() as client:
            res = await client.post(
                f"/v1/text-to-speech/{voice_id}",
                json=payload,
                headers={
                    "xi-api-key": self.api_key,
                    "Accept": "audio/mpeg",
                    "Content-Type": "application/json",
                },
            )
            res.raise_for_status()
            return res.content

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        """
        Synthesize ``text`` with ``voice_id`` and return the raw MP3 bytes.

        Raises:
            SynthesisError: text too long, empty response, or the request still
                failing after retries.
        """
        if len(text) > self.max_chars:
            raise SynthesisError(
                f"Text too long for speech synthesis ({len(text)} > {self.max_chars} characters)."
            )
        try:
            audio = await self._post_tts(text, voice_id)
        except httpx.HTTPStatusError as e:
            logger.error(
                f"ElevenLabs returned HTTP {e.response.status_code}: {e.response.text[:200]}"
            )
            raise SynthesisError(
                f"Speech synthesis failed with HTTP {e.response.status_code}"
            ) from e
        except (httpx.RequestError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to reach ElevenLabs: {e}")
            raise SynthesisError(f"Speech synthesis request failed: {e}") from e

        if not audio:
            raise SynthesisError("Speech synthesis returned an empty response.")
        return audio
