"""
Twilio Media Streams wire messages.

Inbound events are a closed union discriminated by the lowercase `event`
field. Anything that fails to validate resolves to ParseFailure so the
caller can log it and keep reading.
"""
from dataclasses import dataclass
from typing import Annotated, Dict, List, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError


class MediaFormat(BaseModel):
    encoding: str  # "audio/x-mulaw"
    sampleRate: int  # 8000
    channels: int  # 1


class StartMetadata(BaseModel):
    streamSid: str
    accountSid: str
    callSid: str
    tracks: List[str] = Field(default_factory=list)
    customParameters: Dict[str, str] = Field(default_factory=dict)
    mediaFormat: MediaFormat


class MediaMetadata(BaseModel):
    track: Literal["inbound", "outbound"]
    chunk: str
    timestamp: str
    payload: str  # base64-encoded audio


class StopMetadata(BaseModel):
    accountSid: str
    callSid: str


class MarkMetadata(BaseModel):
    name: str


class ConnectedEvent(BaseModel):
    event: Literal["connected"]
    protocol: str
    version: str


class StartEvent(BaseModel):
    event: Literal["start"]
    sequenceNumber: str
    streamSid: str
    start: StartMetadata


class MediaEvent(BaseModel):
    event: Literal["media"]
    sequenceNumber: str
    streamSid: str
    media: MediaMetadata


class StopEvent(BaseModel):
    event: Literal["stop"]
    sequenceNumber: str
    streamSid: str
    stop: StopMetadata


class MarkEvent(BaseModel):
    event: Literal["mark"]
    sequenceNumber: str
    streamSid: str
    mark: MarkMetadata


InboundEvent = Annotated[
    Union[ConnectedEvent, StartEvent, MediaEvent, StopEvent, MarkEvent],
    Field(discriminator="event"),
]

_INBOUND_ADAPTER = TypeAdapter(InboundEvent)


@dataclass
class ParseFailure:
    """An inbound frame that is not valid JSON or matches no event schema."""
    error: str
    raw: str


def parse_twilio_message(text: str) -> Union[ConnectedEvent, StartEvent, MediaEvent, StopEvent, MarkEvent, ParseFailure]:
    """
    Parse one inbound text frame.

    Args:
        text: Raw WebSocket text frame

    Returns:
        The typed event, or ParseFailure if the frame is malformed
    """
    try:
        return _INBOUND_ADAPTER.validate_json(text)
    except ValidationError as e:
        return ParseFailure(error=str(e), raw=text)


class OutboundMediaPayload(BaseModel):
    payload: str  # base64, headerless 8kHz mono mu-law


class OutboundMarkPayload(BaseModel):
    name: str


class OutboundMediaEvent(BaseModel):
    event: Literal["media"] = "media"
    streamSid: str
    media: OutboundMediaPayload


class OutboundMarkEvent(BaseModel):
    event: Literal["mark"] = "mark"
    streamSid: str
    mark: OutboundMarkPayload
