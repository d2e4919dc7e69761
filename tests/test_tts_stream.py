"""
Unit tests for the TTS-to-Twilio audio pipeline.

Mocks the Google TTS client; no synthesis happens.
"""

import base64
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.audio.conversion import AudioDecodeError
from src.tts.client import SynthesisError
from src.tts.config import TTSConfig
from src.tts.stream import PrerecordedUtterance, TTSStream


def make_tts_client(payload: str = None, error: Exception = None) -> MagicMock:
    client = MagicMock()
    client.config = TTSConfig()
    client.synthesize = AsyncMock(return_value=payload, side_effect=error)
    return client


@pytest.mark.asyncio
async def test_generate_returns_headerless_samples():
    """Test: generate() strips the 44-byte WAV header from the TTS payload"""
    samples = b"\xff\x7f" * 400
    wav = b"RIFF" + b"\x00" * 40 + samples
    client = make_tts_client(payload=base64.b64encode(wav).decode("ascii"))

    stream = TTSStream(client)
    result = await stream.generate("Hello")

    assert result == samples
    client.synthesize.assert_awaited_once_with(
        "Hello", audio_encoding="MULAW", sample_rate_hertz=8000
    )


@pytest.mark.asyncio
async def test_generate_short_payload_raises():
    client = make_tts_client(payload=base64.b64encode(b"\x00" * 43).decode("ascii"))

    with pytest.raises(AudioDecodeError):
        await TTSStream(client).generate("Hello")


@pytest.mark.asyncio
async def test_generate_propagates_synthesis_error():
    client = make_tts_client(error=SynthesisError("quota exceeded"))

    with pytest.raises(SynthesisError):
        await TTSStream(client).generate("Hello")


@pytest.mark.asyncio
async def test_generate_records_diagnostics():
    recorded = {}

    class RecordingSink:
        def record(self, stage, data):
            recorded[stage] = data

    wav = b"\x00" * 44 + b"\xff" * 8
    client = make_tts_client(payload=base64.b64encode(wav).decode("ascii"))

    await TTSStream(client, diagnostics=RecordingSink()).generate("Hello")

    assert recorded["decoded_container"] == wav
    assert recorded["headerless"] == b"\xff" * 8


@pytest.mark.asyncio
async def test_prerecorded_clip_is_sent_as_is(tmp_path):
    clip = tmp_path / "standard.dat"
    clip.write_bytes(b"\xff\xfe\xfd" * 100)

    source = PrerecordedUtterance(clip)
    result = await source.generate("ignored")

    assert result == b"\xff\xfe\xfd" * 100


@pytest.mark.asyncio
async def test_missing_prerecorded_clip_raises(tmp_path):
    source = PrerecordedUtterance(tmp_path / "missing.dat")

    with pytest.raises(AudioDecodeError):
        await source.generate("ignored")
