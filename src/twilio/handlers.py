"""
Inbound Twilio Media Streams classifier.

Reads frames from the call's WebSocket, parses each into a typed event and
drives the session through AWAITING_START → STARTED → CLOSED. The streamSid
from the 'start' event is handed to the sender exactly once.

The classifier is permissive: malformed frames, binary frames and events
arriving in the wrong phase are logged and skipped. Only the transport
closing ends the loop.
"""
import logging
from typing import Optional

from fastapi import WebSocket

from src.state.session import SessionPhase, StreamSession, StreamSidHandoff
from src.twilio.models import (
    ConnectedEvent,
    MarkEvent,
    MediaEvent,
    ParseFailure,
    StartEvent,
    StopEvent,
    parse_twilio_message,
)

logger = logging.getLogger(__name__)


async def _next_text_frame(websocket: WebSocket, session: StreamSession) -> Optional[str]:
    """
    Read until a text frame arrives.

    Returns:
        Frame text, or None once the transport has closed or failed
    """
    while True:
        try:
            message = await websocket.receive()
        except Exception as e:
            logger.warning(f"Failed to receive message from Twilio stream: {e}")
            return None

        if message.get("type") == "websocket.disconnect":
            logger.info(
                f"Twilio stream disconnected (code={message.get('code')}, "
                f"stream={session.stream_sid})"
            )
            return None

        text = message.get("text")
        if text is None:
            logger.warning("Got an unsupported (non-text) message type from Twilio")
            continue
        return text


def _parse(text: str, session: StreamSession):
    event = parse_twilio_message(text)
    if isinstance(event, ParseFailure):
        session.parse_failures += 1
        logger.warning(f"Failed to parse Twilio message: {event.error} (frame: {text[:100]!r})")
        return None
    return event


async def _await_start(websocket: WebSocket, session: StreamSession) -> Optional[str]:
    """Pre-start loop. Returns the streamSid, or None if the socket closed first."""
    session.phase = SessionPhase.AWAITING_START

    while True:
        text = await _next_text_frame(websocket, session)
        if text is None:
            return None

        event = _parse(text, session)
        if event is None:
            continue

        if isinstance(event, ConnectedEvent):
            logger.info(f"Got connected message: protocol={event.protocol}, version={event.version}")
        elif isinstance(event, StartEvent):
            stream_sid = session.on_start(event)
            logger.info(
                f"Stream started: {stream_sid}, call={session.call_sid}, "
                f"tracks={session.tracks}, format={session.media_format}"
            )
            return stream_sid
        else:
            logger.warning(f"Got '{event.event}' message before 'start'; ignoring")


async def _follow_stream(websocket: WebSocket, session: StreamSession):
    """Post-start loop: runs until the transport closes."""
    stream_sid = session.stream_sid

    while True:
        text = await _next_text_frame(websocket, session)
        if text is None:
            return

        event = _parse(text, session)
        if event is None:
            continue

        if isinstance(event, MediaEvent):
            # Inbound audio isn't used
            session.media_frames_received += 1
        elif isinstance(event, StopEvent):
            session.stopped = True
            logger.info(
                f"[{stream_sid}] Got stop message {event.sequenceNumber} "
                f"(call={event.stop.callSid})"
            )
        elif isinstance(event, MarkEvent):
            logger.info(f"[{stream_sid}] Got mark message: {event.mark.name}")
        else:
            logger.warning(f"[{stream_sid}] Unexpected '{event.event}' message after start")


async def listen_for_stream(
    websocket: WebSocket,
    handoff: StreamSidHandoff,
    session: Optional[StreamSession] = None,
) -> StreamSession:
    """
    Run the inbound side of a media stream session.

    Args:
        websocket: Accepted Twilio WebSocket
        handoff: Receives the streamSid once 'start' is seen
        session: Session state to fill in (created if omitted)

    Returns:
        The session, in CLOSED phase
    """
    session = session or StreamSession()
    try:
        stream_sid = await _await_start(websocket, session)
        if stream_sid is not None:
            handoff.deliver(stream_sid)
            await _follow_stream(websocket, session)
    finally:
        handoff.close()
        session.close()
        logger.info(
            f"Stream listener finished: stream={session.stream_sid}, "
            f"media_frames={session.media_frames_received}, "
            f"parse_failures={session.parse_failures}"
        )
    return session
