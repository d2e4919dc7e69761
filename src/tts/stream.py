"""
TTS-to-Twilio audio pipeline.

Produces the raw samples for one utterance in Twilio's format:
headerless mu-law, 8kHz, mono.

TTSStream synthesizes live through Google TTS; PrerecordedUtterance reads a
clip that was prepared offline (e.g. recorded in Audacity as mu-law/8000
mono WAV with the first 44 bytes removed).
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol, Union

from src.audio.conversion import (
    AudioDecodeError,
    TWILIO_SAMPLE_RATE,
    payload_to_raw_samples,
)
from src.audio.diagnostics import DiagnosticsSink, NULL_SINK
from src.tts.client import GoogleTTSClient

logger = logging.getLogger(__name__)


class UtteranceSource(Protocol):
    """Anything that turns text into headerless mu-law 8kHz mono samples."""

    async def generate(self, text: str) -> bytes: ...


class TTSStream:
    """
    Streaming pipeline: text → Google TTS (MULAW/8000 WAV) → raw samples.
    """

    def __init__(self, tts_client: GoogleTTSClient, diagnostics: Optional[DiagnosticsSink] = None):
        self.tts_client = tts_client
        self.diagnostics = diagnostics or NULL_SINK

    async def generate(self, text: str) -> bytes:
        """
        Synthesize text into Twilio-ready raw samples.

        Args:
            text: Text to synthesize

        Returns:
            Headerless mu-law 8kHz mono bytes

        Raises:
            SynthesisError: If the backend call fails
            AudioDecodeError: If the response can't be unwrapped
        """
        payload = await self.tts_client.synthesize(
            text,
            audio_encoding="MULAW",
            sample_rate_hertz=TWILIO_SAMPLE_RATE,
        )
        return payload_to_raw_samples(payload, diagnostics=self.diagnostics)


class PrerecordedUtterance:
    """
    Serves a headerless mu-law 8kHz mono clip from disk instead of synthesizing.

    The text argument to generate() is ignored.
    """

    def __init__(self, path: Union[str, Path], diagnostics: Optional[DiagnosticsSink] = None):
        self.path = Path(path)
        self.diagnostics = diagnostics or NULL_SINK

    async def generate(self, text: str) -> bytes:
        try:
            samples = await asyncio.to_thread(self.path.read_bytes)
        except OSError as e:
            raise AudioDecodeError(f"Cannot read pre-recorded clip {self.path}: {e}") from e

        logger.info(f"Loaded pre-recorded clip {self.path} ({len(samples)} bytes)")
        self.diagnostics.record("headerless", samples)
        return samples
