"""
Outbound Twilio Media Streams messages.

Raw mu-law samples → base64 → JSON text frame addressed to one stream.

The whole utterance goes out as a single media frame. Twilio plays it, but
long utterances should really be split into ~20ms frames with pacing; that
is not done here.
"""
import base64

from src.twilio.models import (
    OutboundMarkEvent,
    OutboundMarkPayload,
    OutboundMediaEvent,
    OutboundMediaPayload,
)


def _require_stream_sid(stream_sid: str):
    if not stream_sid:
        raise ValueError("Outbound messages require a non-empty streamSid")


def build_media_message(raw_samples: bytes, stream_sid: str) -> str:
    """
    Wrap raw audio in a Twilio `media` event.

    Args:
        raw_samples: Headerless mu-law 8kHz mono bytes
        stream_sid: Stream the audio is played on

    Returns:
        JSON text ready to send as one WebSocket frame
    """
    _require_stream_sid(stream_sid)
    payload = base64.b64encode(raw_samples).decode("utf-8")
    message = OutboundMediaEvent(
        streamSid=stream_sid,
        media=OutboundMediaPayload(payload=payload),
    )
    return message.model_dump_json()


def build_mark_message(name: str, stream_sid: str) -> str:
    """Build a Twilio `mark` event; Twilio echoes it back once playback reaches it."""
    _require_stream_sid(stream_sid)
    message = OutboundMarkEvent(
        streamSid=stream_sid,
        mark=OutboundMarkPayload(name=name),
    )
    return message.model_dump_json()
