"""
TTS client for Google Cloud Text-to-Speech.

Talks to the REST endpoint directly so the response keeps its wire shape:
`audioContent` is base64 text wrapping the encoded audio. For MULAW/8000
that is a WAV container (44-byte header + samples), which the audio
pipeline unwraps.

One client is shared across all calls. It holds only configuration, the
service-account credentials and an HTTP connection pool.
"""

import asyncio
import base64
import binascii
import logging
from typing import Optional

import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from src.tts.config import TTSConfig

logger = logging.getLogger(__name__)

TTS_ENDPOINT = "https://texttospeech.googleapis.com/v1/text:synthesize"
TTS_SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


class SynthesisError(RuntimeError):
    """Google TTS request failed or returned no audio."""


def load_credentials(path: str) -> service_account.Credentials:
    """
    Load service-account credentials for Google TTS.

    Args:
        path: Service-account JSON key file

    Raises:
        FileNotFoundError, ValueError: If the key file is missing or invalid
    """
    credentials = service_account.Credentials.from_service_account_file(
        path, scopes=TTS_SCOPES
    )
    logger.info(f"Loaded Google service account: {credentials.service_account_email}")
    return credentials


class GoogleTTSClient:
    """
    Async Google TTS client.

    synthesize() returns the base64 `audioContent` exactly as the API sends
    it; callers decide how to unwrap it.
    """

    def __init__(
        self,
        credentials,
        config: Optional[TTSConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        endpoint: str = TTS_ENDPOINT,
    ):
        self.credentials = credentials
        self.config = config or TTSConfig()
        self.endpoint = endpoint
        self.http_client = http_client or httpx.AsyncClient(timeout=30)
        self._refresh_lock = asyncio.Lock()
        logger.info(
            f"GoogleTTSClient initialized: voice={self.config.voice_name}, "
            f"language={self.config.language_code}"
        )

    @classmethod
    def from_service_account_file(
        cls, path: str, config: Optional[TTSConfig] = None
    ) -> "GoogleTTSClient":
        return cls(load_credentials(path), config=config)

    async def aclose(self):
        await self.http_client.aclose()

    async def _access_token(self) -> str:
        """Return a valid bearer token, refreshing it (once, under lock) when stale."""
        async with self._refresh_lock:
            if not self.credentials.valid:
                try:
                    # google-auth refresh is blocking
                    await asyncio.to_thread(self.credentials.refresh, GoogleAuthRequest())
                except GoogleAuthError as e:
                    raise SynthesisError(f"Failed to refresh Google credentials: {e}") from e
            return self.credentials.token

    def _build_request(self, text: str, audio_encoding: str, sample_rate_hertz: Optional[int]) -> dict:
        audio_config = {"audioEncoding": audio_encoding}
        if sample_rate_hertz:
            audio_config["sampleRateHertz"] = sample_rate_hertz
        return {
            "input": {"text": text},
            "voice": {
                "languageCode": self.config.language_code,
                "name": self.config.voice_name,
                "ssmlGender": self.config.ssml_gender,
            },
            "audioConfig": audio_config,
        }

    async def synthesize(
        self,
        text: str,
        audio_encoding: Optional[str] = None,
        sample_rate_hertz: Optional[int] = None,
    ) -> str:
        """
        Synthesize text to speech.

        Args:
            text: Text to synthesize
            audio_encoding: Google AudioEncoding name (defaults to config, MULAW)
            sample_rate_hertz: Output sample rate (defaults to config, 8000)

        Returns:
            base64-encoded audio content

        Raises:
            SynthesisError: On transport/HTTP failure or a response without audio
        """
        encoding = audio_encoding or self.config.audio_encoding
        rate = sample_rate_hertz if sample_rate_hertz is not None else self.config.sample_rate
        body = self._build_request(text, encoding, rate)
        token = await self._access_token()

        try:
            response = await self.http_client.post(
                self.endpoint,
                json=body,
                headers={"Authorization": f"Bearer {token}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Google TTS returned {e.response.status_code}: {e.response.text[:200]}")
            raise SynthesisError(f"Google TTS request failed with status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"Google TTS transport error: {e}")
            raise SynthesisError(f"Google TTS request failed: {e}") from e

        try:
            audio_content = response.json().get("audioContent")
        except ValueError as e:
            raise SynthesisError(f"Google TTS returned a non-JSON response: {e}") from e
        if not audio_content:
            raise SynthesisError("Google TTS response contains no audioContent")

        logger.info(f"Synthesized {len(text)} chars as {encoding} ({len(audio_content)} base64 chars)")
        return audio_content

    async def synthesize_mp3(self, text: str) -> bytes:
        """Synthesize text as MP3 and return the decoded bytes (for <Play>)."""
        audio_content = await self.synthesize(text, audio_encoding="MP3", sample_rate_hertz=0)
        try:
            return base64.b64decode(audio_content)
        except (binascii.Error, ValueError) as e:
            raise SynthesisError(f"Google TTS returned invalid base64 audio: {e}") from e
