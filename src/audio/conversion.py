"""
Audio payload conversion: synthesis response → Twilio media payload

Google TTS returns base64 text wrapping a WAV container (44-byte canonical
header + mu-law samples). Twilio media frames carry only the raw samples:
8kHz, mono, mu-law, no header.

Pipeline: base64 → WAV bytes → strip header → raw mu-law samples
"""
import base64
import binascii
import logging
import struct
from dataclasses import dataclass
from typing import Optional

from src.audio.diagnostics import DiagnosticsSink, NULL_SINK

logger = logging.getLogger(__name__)

# Canonical minimal RIFF/WAVE header (RIFF + fmt + data chunk headers)
WAV_HEADER_SIZE = 44

TWILIO_SAMPLE_RATE = 8000
TWILIO_CHANNELS = 1
# WAVE_FORMAT_MULAW
WAVE_FORMAT_MULAW = 0x0007


class AudioDecodeError(ValueError):
    """Synthesis payload cannot be turned into raw Twilio samples."""


@dataclass
class ContainerInfo:
    """Format fields declared in a WAV header."""
    format_tag: int
    channels: int
    sample_rate: int
    bits_per_sample: int

    @property
    def is_twilio_mulaw(self) -> bool:
        return (
            self.format_tag == WAVE_FORMAT_MULAW
            and self.channels == TWILIO_CHANNELS
            and self.sample_rate == TWILIO_SAMPLE_RATE
        )


def decode_synthesis_payload(payload: str) -> bytes:
    """
    Base64-decode a synthesis response payload into container bytes.

    Args:
        payload: base64 text as returned in the TTS response

    Returns:
        Decoded container bytes (header + samples)

    Raises:
        AudioDecodeError: If payload is not valid base64
    """
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise AudioDecodeError(f"Synthesis payload is not valid base64: {e}") from e


def strip_container_header(container: bytes) -> bytes:
    """
    Drop the fixed 44-byte WAV header, leaving raw samples.

    The header is not parsed; the offset is trusted as-is.

    Raises:
        AudioDecodeError: If container is shorter than the header
    """
    if len(container) < WAV_HEADER_SIZE:
        raise AudioDecodeError(
            f"Container too short: {len(container)} bytes, "
            f"expected at least {WAV_HEADER_SIZE}"
        )
    return container[WAV_HEADER_SIZE:]


def inspect_container_header(container: bytes) -> Optional[ContainerInfo]:
    """
    Read the declared format from a canonical WAV header.

    Returns None when the bytes don't look like RIFF/WAVE with a fmt chunk
    at the canonical offset.
    """
    if len(container) < WAV_HEADER_SIZE:
        return None
    if container[0:4] != b"RIFF" or container[8:12] != b"WAVE" or container[12:16] != b"fmt ":
        return None
    format_tag, channels, sample_rate = struct.unpack_from("<HHI", container, 20)
    (bits_per_sample,) = struct.unpack_from("<H", container, 34)
    return ContainerInfo(
        format_tag=format_tag,
        channels=channels,
        sample_rate=sample_rate,
        bits_per_sample=bits_per_sample,
    )


def payload_to_raw_samples(
    payload: str, diagnostics: Optional[DiagnosticsSink] = None
) -> bytes:
    """
    Complete conversion from a TTS response payload to Twilio raw samples.

    Pipeline: base64 → WAV container → headerless mu-law 8kHz mono

    Args:
        payload: base64-encoded WAV returned by the synthesis backend
        diagnostics: Optional sink receiving each intermediate stage

    Returns:
        Raw mu-law sample bytes

    Raises:
        AudioDecodeError: On invalid base64 or a container shorter than the header
    """
    sink = diagnostics or NULL_SINK
    sink.record("synthesis_payload", payload.encode("ascii", errors="replace"))

    container = decode_synthesis_payload(payload)
    sink.record("decoded_container", container)

    info = inspect_container_header(container)
    if info is None:
        logger.warning("Synthesis container has no canonical WAV header; stripping fixed offset anyway")
    elif not info.is_twilio_mulaw:
        logger.warning(
            f"Synthesis container declares format={info.format_tag:#06x}, "
            f"rate={info.sample_rate}, channels={info.channels}; expected mu-law/8000/mono"
        )

    samples = strip_container_header(container)
    sink.record("headerless", samples)

    logger.debug(f"Converted synthesis payload: {len(container)} → {len(samples)} bytes")
    return samples
