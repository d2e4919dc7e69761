import base64
import struct

import pytest

from src.audio.conversion import (
    AudioDecodeError,
    WAV_HEADER_SIZE,
    WAVE_FORMAT_MULAW,
    decode_synthesis_payload,
    inspect_container_header,
    payload_to_raw_samples,
    strip_container_header,
)
from src.audio.diagnostics import FileDiagnosticsSink


def make_wav(samples: bytes, format_tag: int = WAVE_FORMAT_MULAW, sample_rate: int = 8000, channels: int = 1) -> bytes:
    """Build a canonical 44-byte-header WAV around raw samples."""
    bits = 8
    block_align = channels * bits // 8
    header = b"RIFF" + struct.pack("<I", 36 + len(samples)) + b"WAVE"
    header += b"fmt " + struct.pack(
        "<IHHIIHH", 16, format_tag, channels, sample_rate, sample_rate * block_align, block_align, bits
    )
    header += b"data" + struct.pack("<I", len(samples))
    assert len(header) == WAV_HEADER_SIZE
    return header + samples


def test_strip_exact_header_yields_empty_samples():
    """Test: a 44-byte container decodes to zero samples"""
    assert strip_container_header(b"\x00" * 44) == b""


def test_strip_short_container_is_an_error():
    """Test: a 43-byte container is rejected, not silently emptied"""
    with pytest.raises(AudioDecodeError):
        strip_container_header(b"\x00" * 43)


def test_strip_removes_exactly_44_bytes():
    samples = bytes(range(200))
    assert strip_container_header(make_wav(samples)) == samples


def test_payload_to_raw_samples_is_byte_exact():
    """Test: base64 WAV payload → the exact sample bytes inside it"""
    samples = bytes([0xFF, 0x7F, 0x00, 0x80]) * 50
    payload = base64.b64encode(make_wav(samples)).decode("ascii")

    assert payload_to_raw_samples(payload) == samples


def test_payload_shorter_than_header_raises():
    payload = base64.b64encode(b"RIFF" + b"\x00" * 39).decode("ascii")
    with pytest.raises(AudioDecodeError):
        payload_to_raw_samples(payload)


def test_invalid_base64_raises():
    with pytest.raises(AudioDecodeError):
        decode_synthesis_payload("not base64 at all!")


def test_inspect_container_header_reads_format():
    info = inspect_container_header(make_wav(b"\xff" * 10))
    assert info is not None
    assert info.format_tag == WAVE_FORMAT_MULAW
    assert info.sample_rate == 8000
    assert info.channels == 1
    assert info.is_twilio_mulaw


def test_inspect_container_header_flags_other_formats():
    info = inspect_container_header(make_wav(b"\x00" * 10, format_tag=1, sample_rate=24000))
    assert info is not None
    assert not info.is_twilio_mulaw


def test_inspect_non_wav_returns_none():
    assert inspect_container_header(b"\x00" * 64) is None


def test_unexpected_container_format_is_still_stripped():
    """Test: declared format is only logged, the fixed offset still applies"""
    samples = b"\x01\x02\x03\x04"
    payload = base64.b64encode(make_wav(samples, format_tag=1, sample_rate=16000)).decode("ascii")
    assert payload_to_raw_samples(payload) == samples


def test_file_diagnostics_sink_records_each_stage(tmp_path):
    sink = FileDiagnosticsSink(tmp_path / "dumps")
    samples = b"\xff" * 16
    wav = make_wav(samples)
    payload = base64.b64encode(wav).decode("ascii")

    payload_to_raw_samples(payload, diagnostics=sink)

    dump_dir = tmp_path / "dumps"
    assert (dump_dir / "synthesis_payload.txt").read_text() == payload
    assert (dump_dir / "decoded_container.wav").read_bytes() == wav
    assert (dump_dir / "headerless.dat").read_bytes() == samples
